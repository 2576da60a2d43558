"""Background long poll keeping the flat cache in sync with the device.

Each cycle sends a conditional fetch carrying the validator (``ETag``)
from the previous response.  ``304`` ends the cycle without touching
anything; otherwise every changed key is decoded, written to the cache
and announced as an external update, in response order, before the next
cycle starts.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from enum import StrEnum
from typing import Any

from pymotu._transport import PollResponse, Transport
from pymotu.codec import decode_json
from pymotu.exceptions import MotuDecodeError, MotuNotConnectedError
from pymotu.state.bus import UpdateBus
from pymotu.state.cache import FlatCache
from pymotu.state.events import Update

_logger = logging.getLogger(__name__)


class PollerState(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    APPLYING = "applying"
    NOT_MODIFIED = "not_modified"
    STOPPED = "stopped"
    FAILED = "failed"


def _discard_late_response(task: asyncio.Future[Any]) -> None:
    """Done-callback for a fetch that finished after the poller stopped."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        _logger.debug("Poll request finished after stop with error: %s", exc)
    else:
        _logger.debug("Poll request finished after stop, response discarded")


class SyncPoller:
    """Long-poll loop feeding a :class:`FlatCache` and an :class:`UpdateBus`."""

    def __init__(
        self,
        transport: Transport,
        cache: FlatCache,
        bus: UpdateBus,
        *,
        url: str,
        client_id: int,
        on_seeded: Callable[[], None] | None = None,
    ) -> None:
        self._transport = transport
        self._cache = cache
        self._bus = bus
        self._url = url
        self._params: Mapping[str, str] = {"client": str(client_id)}
        self._on_seeded = on_seeded
        self.state = PollerState.IDLE
        self.validator: str | None = None
        self.failure: BaseException | None = None
        self.cycles = 0

    @property
    def seeded(self) -> bool:
        """Whether the first full cycle has been applied."""
        return self.cycles > 0

    def _apply(self, body: Mapping[str, Any]) -> int:
        applied = 0
        for path, raw in body.items():
            try:
                value = decode_json(raw, path)
            except MotuDecodeError as exc:
                _logger.warning("Skipping undecodable key %s: %s", path, exc)
                continue
            self._cache.insert(path, value)
            self._bus.publish(Update.external(path, value))
            applied += 1
        return applied

    def _handle(self, response: PollResponse) -> bool:
        """Apply one response; return whether anything changed."""
        if response.validator is not None:
            self.validator = response.validator

        if response.not_modified:
            self.state = PollerState.NOT_MODIFIED
            _logger.debug("Datastore not modified")
            return False

        self.state = PollerState.APPLYING
        applied = self._apply(response.body)
        _logger.debug("Applied %d/%d datastore keys", applied, len(response.body))
        return True

    def _complete_cycle(self) -> None:
        self.cycles += 1
        if self.cycles == 1 and self._on_seeded is not None:
            self._on_seeded()

    async def poll_once(self) -> bool:
        """Run a single fetch/apply cycle.

        Returns ``True`` when the datastore reported changes.
        """
        self.state = PollerState.POLLING
        response = await self._transport.conditional_get(self._url, params=self._params, validator=self.validator)
        changed = self._handle(response)
        self._complete_cycle()
        return changed

    async def run(self, stop: asyncio.Event, seeded: asyncio.Future[None] | None = None) -> None:
        """Poll until *stop* is set or the transport fails.

        The fetch of each cycle is raced against *stop*.  If *stop* wins,
        the request already on the wire is left to finish on its own and
        its response is discarded.  *seeded* is resolved after the first
        completed cycle, or with the failure if there is none.
        """
        stop_waiter = asyncio.ensure_future(stop.wait())
        try:
            while not stop.is_set():
                self.state = PollerState.POLLING
                fetch = asyncio.ensure_future(
                    self._transport.conditional_get(self._url, params=self._params, validator=self.validator)
                )
                try:
                    done, _ = await asyncio.wait({fetch, stop_waiter}, return_when=asyncio.FIRST_COMPLETED)
                except asyncio.CancelledError:
                    fetch.cancel()
                    raise

                if fetch not in done:
                    fetch.add_done_callback(_discard_late_response)
                    break

                try:
                    response = fetch.result()
                except Exception as exc:
                    self.state = PollerState.FAILED
                    self.failure = exc
                    _logger.error("Datastore poll failed, stopping: %s", exc)
                    if seeded is not None and not seeded.done():
                        seeded.set_exception(exc)
                    raise

                self._handle(response)
                self._complete_cycle()
                if seeded is not None and not seeded.done():
                    seeded.set_result(None)
        finally:
            stop_waiter.cancel()
            if self.state != PollerState.FAILED:
                self.state = PollerState.STOPPED
            if seeded is not None and not seeded.done():
                seeded.set_exception(MotuNotConnectedError("poller stopped before the initial datastore pass"))
