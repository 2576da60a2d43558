"""Write path: send changes to the device, then mirror them locally.

A batch is all-or-nothing.  Only after the device accepted the whole
PATCH are the values written to the cache and announced as internal
updates, in request order.

Writes are not ordered against poll responses being applied at the same
time: when both touch the same key, whichever is applied last wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable, Mapping

from pymotu._constants import WRITE_SUCCESS_STATUSES
from pymotu._transport import Transport
from pymotu.codec import to_wire
from pymotu.exceptions import MotuWriteRejectedError
from pymotu.models.request import Request
from pymotu.models.value import Value
from pymotu.state.bus import UpdateBus
from pymotu.state.cache import FlatCache
from pymotu.state.events import Update

_logger = logging.getLogger(__name__)


def _normalize(requests: Iterable[Request | tuple[str, Value]]) -> list[Request]:
    normalized: list[Request] = []
    for item in requests:
        if isinstance(item, Request):
            normalized.append(item)
        else:
            path, value = item
            normalized.append(Request(path=path, value=value))
    return normalized


def build_payload(requests: Iterable[Request]) -> str:
    """Serialize requests into the JSON object sent in the ``json`` form field.

    A path written twice keeps its last value.
    """
    body = {request.path: to_wire(request.value) for request in requests}
    return json.dumps(body, separators=(",", ":"))


class WritePath:
    """Applies local writes to the device, the cache and the update bus."""

    def __init__(
        self,
        transport: Transport,
        cache: FlatCache,
        bus: UpdateBus | None,
        *,
        url: str,
        client_id: int,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._bus = bus
        self._url = url
        self._params: Mapping[str, str] = {"client": str(client_id)}
        self._lock = asyncio.Lock()

    def attach_bus(self, bus: UpdateBus | None) -> None:
        """Announce successful writes on *bus* from now on."""
        self._bus = bus

    async def set(self, requests: Iterable[Request | tuple[str, Value]]) -> None:
        """Write every request in one PATCH.

        Raises
        ------
        MotuWriteRejectedError
            The device answered with a non-success status.  Nothing was
            applied locally.
        MotuTransportError
            The request could not be sent.
        """
        batch = _normalize(requests)
        if not batch:
            return

        payload = build_payload(batch)

        async with self._lock:
            status, text = await self._transport.patch(self._url, params=self._params, payload=payload)
            if status not in WRITE_SUCCESS_STATUSES:
                raise MotuWriteRejectedError(
                    f"unexpected response from device: HTTP {status}: {text[:200]}",
                    status_code=status,
                    body=text,
                )

            _logger.debug("Device accepted %d key(s)", len(batch))
            self._cache.insert_many(request.as_pair() for request in batch)
            if self._bus is not None:
                self._bus.publish_many(Update.internal(request.path, request.value) for request in batch)
