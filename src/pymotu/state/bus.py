"""Fan-out of datastore updates to any number of subscribers.

Each subscriber gets its own bounded buffer.  Publishing never blocks:
when a subscriber's buffer is full the update is dropped for that
subscriber only, and the subscriber is told how many it missed at the
point in the stream where the gap occurred.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import AsyncIterator, Collection, Iterable
from dataclasses import dataclass

from pymotu._constants import DEFAULT_UPDATE_BUFFER
from pymotu.exceptions import MotuUpdatesClosedError, MotuUpdatesLaggedError
from pymotu.state.events import Update, UpdateOrigin

_logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _Gap:
    """Marker for updates dropped while the buffer was full."""

    missed: int = 1


class Subscription:
    """A single subscriber's view of the update bus.

    Usage::

        sub = client.updates()
        async for update in sub:
            ...

    Iteration (and :meth:`recv`) raises :class:`MotuUpdatesLaggedError`
    once per gap; catch it and keep receiving to continue after the gap.
    """

    def __init__(
        self,
        bus: UpdateBus,
        buffer_size: int,
        origins: Collection[UpdateOrigin] | None = None,
    ) -> None:
        self._bus = bus
        self._buffer_size = buffer_size
        self._origins = frozenset(origins) if origins is not None else None
        self._buffer: deque[Update | _Gap] = deque()
        self._pending = 0
        self._ready = asyncio.Event()
        self._closed = False

    @property
    def pending(self) -> int:
        """Number of buffered updates not yet received."""
        return self._pending

    @property
    def closed(self) -> bool:
        return self._closed

    def accepts(self, update: Update) -> bool:
        return self._origins is None or update.origin in self._origins

    def _push(self, update: Update) -> None:
        if self._closed or not self.accepts(update):
            return
        if self._pending >= self._buffer_size:
            tail = self._buffer[-1] if self._buffer else None
            if isinstance(tail, _Gap):
                tail.missed += 1
            else:
                self._buffer.append(_Gap())
        else:
            self._buffer.append(update)
            self._pending += 1
        self._ready.set()

    def _close(self) -> None:
        self._closed = True
        self._ready.set()

    async def recv(self) -> Update:
        """Wait for the next update.

        Raises
        ------
        MotuUpdatesLaggedError
            Updates were dropped here because this subscriber fell behind.
        MotuUpdatesClosedError
            The bus closed and every buffered update has been received.
        """
        while not self._buffer:
            if self._closed:
                raise MotuUpdatesClosedError("update bus closed")
            self._ready.clear()
            await self._ready.wait()

        item = self._buffer.popleft()
        if isinstance(item, _Gap):
            raise MotuUpdatesLaggedError(item.missed)
        self._pending -= 1
        return item

    def close(self) -> None:
        """Stop receiving updates and detach from the bus."""
        self._bus._unsubscribe(self)
        self._close()

    def __aiter__(self) -> AsyncIterator[Update]:
        return self

    async def __anext__(self) -> Update:
        try:
            return await self.recv()
        except MotuUpdatesClosedError:
            raise StopAsyncIteration from None


class UpdateBus:
    """Broadcast channel for :class:`Update` objects."""

    def __init__(self, buffer_size: int = DEFAULT_UPDATE_BUFFER) -> None:
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")
        self._buffer_size = buffer_size
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, origins: Collection[UpdateOrigin] | None = None) -> Subscription:
        """Register a subscriber receiving every update published from now on.

        *origins* restricts the subscription to the given update origins.
        """
        if self._closed:
            raise MotuUpdatesClosedError("update bus closed")
        subscription = Subscription(self, self._buffer_size, origins)
        self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def publish(self, update: Update) -> None:
        if self._closed:
            _logger.debug("Dropping update for %s, bus closed", update.path)
            return
        for subscription in self._subscribers:
            subscription._push(update)

    def publish_many(self, updates: Iterable[Update]) -> None:
        for update in updates:
            self.publish(update)

    def close(self) -> None:
        """Close the bus; subscribers drain their buffers and then stop."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscribers:
            subscription._close()
        self._subscribers.clear()
