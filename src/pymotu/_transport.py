"""HTTP transport for the datastore API."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp

from pymotu._constants import USER_AGENT, WRITE_FORM_FIELD
from pymotu.exceptions import MotuTransportError

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollResponse:
    """Result of one conditional datastore fetch."""

    body: dict[str, Any]
    validator: str | None
    not_modified: bool = False


class Transport(Protocol):
    """Structural transport interface used by the poller and the write path.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def check(self, url: str) -> None:
        ...

    async def conditional_get(
        self,
        url: str,
        *,
        params: Mapping[str, str],
        validator: str | None,
    ) -> PollResponse:
        ...

    async def patch(self, url: str, *, params: Mapping[str, str], payload: str) -> tuple[int, str]:
        ...


class HttpTransport:
    """aiohttp implementation of :class:`Transport`."""

    def __init__(
        self,
        http_session: aiohttp.ClientSession,
        *,
        request_timeout: float | None = None,
    ) -> None:
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=request_timeout)

    async def check(self, url: str) -> None:
        """Fail with :class:`MotuTransportError` unless *url* answers 2xx."""
        _logger.debug("GET %s (health check)", url)
        try:
            async with self._http.get(url, headers={"user-agent": USER_AGENT}, timeout=self._timeout) as resp:
                if resp.status >= 300:
                    text = await resp.text()
                    raise MotuTransportError(
                        f"Could not connect to device: HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
        except MotuTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise MotuTransportError(f"Could not connect to device at {url}: {exc}", url=url) from exc

    async def conditional_get(
        self,
        url: str,
        *,
        params: Mapping[str, str],
        validator: str | None,
    ) -> PollResponse:
        """Fetch the datastore, long-polling when *validator* is known.

        1. Send ``If-None-Match`` with the previous ``ETag`` if we have one
        2. ``304`` means nothing changed since that validator
        3. ``200`` carries a ``{path: scalar}`` object of changed keys
        """
        headers: dict[str, str] = {"user-agent": USER_AGENT}
        if validator is not None:
            headers["If-None-Match"] = validator

        _logger.debug("GET %s validator=%s", url, validator)

        try:
            async with self._http.get(url, params=dict(params), headers=headers, timeout=self._timeout) as resp:
                if resp.status == 304:
                    return PollResponse(body={}, validator=resp.headers.get("ETag", validator), not_modified=True)
                text = await resp.text()
                if resp.status != 200:
                    raise MotuTransportError(
                        f"HTTP {resp.status} from {url}: {text[:200]}",
                        status_code=resp.status,
                        url=url,
                    )
                etag = resp.headers.get("ETag")
        except MotuTransportError:
            raise
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise MotuTransportError(f"Request to {url} failed: {exc}", url=url) from exc

        try:
            body = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MotuTransportError(f"Invalid JSON from {url}: {text[:200]}", url=url) from exc

        if not isinstance(body, dict):
            raise MotuTransportError(f"Datastore response from {url} is not an object", url=url)

        return PollResponse(body=body, validator=etag)

    async def patch(self, url: str, *, params: Mapping[str, str], payload: str) -> tuple[int, str]:
        """PATCH *payload* as the multipart ``json`` field; return ``(status, body)``."""
        form = aiohttp.FormData(default_to_multipart=True)
        form.add_field(WRITE_FORM_FIELD, payload)

        _logger.debug("PATCH %s", url)

        try:
            async with self._http.patch(
                url,
                params=dict(params),
                data=form,
                headers={"user-agent": USER_AGENT},
                timeout=self._timeout,
            ) as resp:
                return resp.status, await resp.text()
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise MotuTransportError(f"Request to {url} failed: {exc}", url=url) from exc
