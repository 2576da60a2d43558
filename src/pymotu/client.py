"""High-level async client for the MOTU AVB datastore API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Collection, Iterable, Mapping
from typing import Any

import aiohttp

from pymotu._transport import HttpTransport, Transport
from pymotu.config import MotuConfig
from pymotu.discovery import DeviceInfo
from pymotu.exceptions import MotuAlreadyConnectedError, MotuError, MotuNotConnectedError
from pymotu.ingestion.poller import SyncPoller
from pymotu.ingestion.writer import WritePath
from pymotu.models.bank import Bank, BankDirection
from pymotu.models.request import Request
from pymotu.models.value import Value
from pymotu.projector import ModelProjector
from pymotu.state.bus import Subscription, UpdateBus
from pymotu.state.cache import FlatCache
from pymotu.state.events import UpdateOrigin

_logger = logging.getLogger(__name__)


class MotuClient:
    """Async client for one MOTU AVB interface.

    Usage::

        async with MotuClient(MotuConfig(host="192.168.1.50")) as client:
            await client.connect()
            bank = client.input_banks[0]
            request = client.model.channel_trim_request(BankDirection.INPUT, 0, 0, 12)
            if request is not None:
                await client.set(request)

    ``connect()`` starts a background long poll that keeps a local copy
    of the datastore current and projects it onto input/output banks.
    """

    def __init__(
        self,
        config: MotuConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        device: DeviceInfo | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._external_transport = transport is not None
        self._transport: Transport | None = transport
        self._device = device or DeviceInfo(name=config.host, hostname=config.host, port=config.port)
        self._cache = FlatCache()
        self._writer: WritePath | None = None
        self._bus: UpdateBus | None = None
        self._stop: asyncio.Event | None = None
        self._poller: SyncPoller | None = None
        self._poller_task: asyncio.Task[None] | None = None
        self._projector: ModelProjector | None = None
        self._projector_task: asyncio.Task[None] | None = None
        self._connected = False

    @classmethod
    def from_device(
        cls,
        device: DeviceInfo,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        **config_overrides: Any,
    ) -> MotuClient:
        """Build a client for a discovered device."""
        return cls(device.to_config(**config_overrides), session=session, transport=transport, device=device)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> MotuClient:
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(self._http_session, request_timeout=self._config.request_timeout)
        self._writer = WritePath(
            self._transport,
            self._cache,
            None,
            url=self._config.datastore_url,
            client_id=self._config.client_id,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.disconnect()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_transport:
            self._transport = None
        self._writer = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> MotuConfig:
        return self._config

    @property
    def device(self) -> DeviceInfo:
        return self._device

    @property
    def client_id(self) -> int:
        return self._config.client_id

    @property
    def is_connected(self) -> bool:
        """Connected and the background poll is still running."""
        return self._connected and self._poller_task is not None and not self._poller_task.done()

    @property
    def connection_error(self) -> BaseException | None:
        """The error that stopped the background poll, if any."""
        return self._poller.failure if self._poller is not None else None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise MotuError("Client not initialized. Use 'async with MotuClient(...) as client:'")
        return self._transport

    def _require_writer(self) -> WritePath:
        if self._writer is None:
            raise MotuError("Client not initialized. Use 'async with MotuClient(...) as client:'")
        return self._writer

    def _require_projector(self) -> ModelProjector:
        if not self._connected or self._projector is None:
            raise MotuNotConnectedError("not connected to device yet, run connect()")
        return self._projector

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Start syncing with the device.

        Checks the device is reachable, runs the first full datastore
        pass, builds the bank model from it, then keeps both current in
        the background.  A failure during any of that is raised here.
        """
        if self._connected:
            raise MotuAlreadyConnectedError("already connected, call disconnect() first")
        transport = self._require_transport()
        writer = self._require_writer()

        await transport.check(self._config.health_url)

        bus = UpdateBus(self._config.update_buffer)
        projector = ModelProjector()
        stop = asyncio.Event()
        seeded: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        subscriptions: list[Subscription] = []

        def _on_seeded() -> None:
            # Runs before the next poll cycle, so no update slips between
            # the seed snapshot and the model's subscription.
            subscriptions.append(bus.subscribe(self._config.model_update_origins))

        poller = SyncPoller(
            transport,
            self._cache,
            bus,
            url=self._config.datastore_url,
            client_id=self._config.client_id,
            on_seeded=_on_seeded,
        )
        poller_task = asyncio.create_task(poller.run(stop, seeded), name="pymotu-poller")
        poller_task.add_done_callback(lambda task: self._on_poller_done(task, bus))

        try:
            await seeded
        except BaseException:
            seeded.cancel()
            stop.set()
            if not poller_task.done():
                poller_task.cancel()
            await asyncio.gather(poller_task, return_exceptions=True)
            bus.close()
            raise

        projector.seed(self._cache.snapshot())

        self._bus = bus
        self._stop = stop
        self._poller = poller
        self._poller_task = poller_task
        self._projector = projector
        self._projector_task = asyncio.create_task(
            projector.consume(subscriptions[0], self._cache.snapshot),
            name="pymotu-projector",
        )
        writer.attach_bus(bus)
        self._connected = True
        _logger.debug(
            "Connected to %s: %d keys, %d input / %d output banks",
            self._config.base_url,
            len(self._cache),
            len(projector.input_banks),
            len(projector.output_banks),
        )

    @staticmethod
    def _on_poller_done(task: asyncio.Task[None], bus: UpdateBus) -> None:
        if not task.cancelled() and task.exception() is not None:
            _logger.debug("Background poll ended with %r", task.exception())
        bus.close()

    async def disconnect(self) -> None:
        """Stop the background poll.  A no-op when not connected."""
        if not self._connected:
            return
        self._connected = False

        if self._stop is not None:
            self._stop.set()
        if self._poller_task is not None:
            await asyncio.gather(self._poller_task, return_exceptions=True)
        if self._bus is not None:
            self._bus.close()
        if self._projector_task is not None:
            await asyncio.gather(self._projector_task, return_exceptions=True)
        if self._writer is not None:
            self._writer.attach_bus(None)

        self._bus = None
        self._stop = None
        self._poller_task = None
        self._projector = None
        self._projector_task = None

    async def wait_closed(self) -> None:
        """Wait for the background poll to end; re-raise the error that ended it."""
        task = self._poller_task
        if task is None:
            raise MotuNotConnectedError("not connected to device yet, run connect()")
        await asyncio.shield(task)

    # ------------------------------------------------------------------
    # Updates and model
    # ------------------------------------------------------------------

    def updates(self, origins: Collection[UpdateOrigin] | None = None) -> Subscription:
        """Subscribe to every update from now on, optionally filtered by origin."""
        if not self.is_connected or self._bus is None:
            raise MotuNotConnectedError("not connected to device yet, run connect()")
        return self._bus.subscribe(origins)

    @property
    def model(self) -> ModelProjector:
        return self._require_projector()

    @property
    def input_banks(self) -> Mapping[int, Bank]:
        return self._require_projector().input_banks

    @property
    def output_banks(self) -> Mapping[int, Bank]:
        return self._require_projector().output_banks

    def bank(self, direction: BankDirection, index: int) -> Bank | None:
        return self._require_projector().bank(direction, index)

    # ------------------------------------------------------------------
    # Flat datastore access
    # ------------------------------------------------------------------

    def get_value(self, path: str) -> Value | None:
        return self._cache.get(path)

    def find_key(self, substring: str) -> list[tuple[str, Value]]:
        """All cached entries whose path contains *substring*."""
        return self._cache.find(substring)

    def snapshot(self) -> list[tuple[str, Value]]:
        return self._cache.snapshot()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def set(self, requests: Request | Iterable[Request]) -> None:
        """Write one request, or several in a single all-or-nothing batch."""
        if isinstance(requests, Request):
            requests = [requests]
        await self._require_writer().set(requests)

    async def set_keys(self, data: Mapping[str, Value] | Iterable[tuple[str, Value]]) -> None:
        """Write raw ``path -> value`` pairs in a single batch."""
        items = data.items() if isinstance(data, Mapping) else data
        await self._require_writer().set(items)
