from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pytest

from pymotu._transport import PollResponse
from pymotu.client import MotuClient
from pymotu.config import MotuConfig
from pymotu.exceptions import (
    MotuAlreadyConnectedError,
    MotuNotConnectedError,
    MotuTransportError,
    MotuWriteRejectedError,
)
from pymotu.models.bank import BankDirection
from pymotu.models.request import Request
from pymotu.models.value import BoolValue, IntValue, PairValue, StringValue
from pymotu.state.events import UpdateOrigin

pytestmark = pytest.mark.e2e

DEVICE_CLIENT = "front-panel"


def _initial_datastore() -> dict[str, Any]:
    return {
        "uid": "0001f2fffe012345",
        "ext/clockSource": "enum:0:0=Internal:1=ADAT",
        "ext/ibank/0/name": "Mic In",
        "ext/ibank/0/numCh": 2,
        "ext/ibank/0/maxCh": 2,
        "ext/ibank/0/ch/0/defaultName": "Mic 1",
        "ext/ibank/0/ch/0/name": "",
        "ext/ibank/0/ch/0/trim": 0,
        "ext/ibank/0/ch/0/trimRange": "0:53",
        "ext/ibank/0/ch/0/48V": "bool:0",
        "ext/ibank/0/ch/0/pad": "bool:0",
        "ext/ibank/0/ch/1/defaultName": "Mic 2",
        "ext/ibank/0/ch/1/connection": "bool:1",
        "ext/obank/0/name": "Main Out",
        "ext/obank/0/ch/0/defaultName": "Main L",
        "ext/obank/0/ch/0/stereoTrim": -10,
        "ext/obank/0/ch/0/stereoTrimRange": "-127:0",
        "ext/obank/0/ch/0/src": "0:0",
    }


@dataclass
class FakeMotuDevice:
    """In-memory datastore speaking the long-poll protocol."""

    datastore: dict[str, Any] = field(default_factory=_initial_datastore)
    version: int = 1
    history: list[tuple[int, str, str]] = field(default_factory=list)
    health_error: Exception | None = None
    poll_error: Exception | None = None
    write_status: int = 204
    poll_wait: float = 0.05
    calls: dict[str, int] = field(default_factory=dict)
    patches: list[dict[str, Any]] = field(default_factory=list)
    _changed: asyncio.Event = field(default_factory=asyncio.Event)

    def _record_call(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    def _commit(self, values: Mapping[str, Any], writer: str) -> None:
        self.version += 1
        for path, value in values.items():
            self.datastore[path] = value
            self.history.append((self.version, path, writer))
        changed, self._changed = self._changed, asyncio.Event()
        changed.set()

    def change(self, values: Mapping[str, Any]) -> None:
        """Simulate a change made on the device itself."""
        self._commit(values, DEVICE_CLIENT)

    def _changes_for(self, client: str, since: int) -> dict[str, Any]:
        return {path: self.datastore[path] for version, path, writer in self.history if version > since and writer != client}

    async def check(self, url: str) -> None:
        self._record_call("check")
        if self.health_error is not None:
            raise self.health_error

    async def conditional_get(self, url: str, *, params: Mapping[str, str], validator: str | None) -> PollResponse:
        self._record_call("poll")
        await asyncio.sleep(0)
        if self.poll_error is not None:
            raise self.poll_error
        if validator is None:
            return PollResponse(body=dict(self.datastore), validator=str(self.version))

        changes = self._changes_for(params["client"], int(validator))
        if changes:
            return PollResponse(body=changes, validator=str(self.version))
        try:
            await asyncio.wait_for(self._changed.wait(), self.poll_wait)
        except TimeoutError:
            pass
        if self.poll_error is not None:
            raise self.poll_error
        changes = self._changes_for(params["client"], int(validator))
        if not changes:
            return PollResponse(body={}, validator=validator, not_modified=True)
        return PollResponse(body=changes, validator=str(self.version))

    async def patch(self, url: str, *, params: Mapping[str, str], payload: str) -> tuple[int, str]:
        self._record_call("patch")
        if self.write_status >= 300:
            return self.write_status, "rejected"
        values = json.loads(payload)
        self.patches.append(values)
        self._commit(values, params["client"])
        return self.write_status, ""


async def _eventually(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _wait() -> None:
        while not predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_wait(), timeout)


def _client(device: FakeMotuDevice, **overrides: Any) -> MotuClient:
    config = MotuConfig(host="motu.local", client_id=1001, **overrides)
    return MotuClient(config, transport=device)


@pytest.mark.asyncio
async def test_connect_seeds_cache_and_banks() -> None:
    device = FakeMotuDevice()
    async with _client(device) as client:
        await client.connect()

        assert client.is_connected
        assert device.calls["check"] == 1
        assert client.get_value("ext/ibank/0/ch/0/48V") == BoolValue(value=False)
        assert client.get_value("ext/obank/0/ch/0/src") == PairValue(items=("0", "0"))
        assert client.get_value("ext/ibank/0/name") == StringValue(value="Mic In")

        assert sorted(client.input_banks) == [0]
        assert sorted(client.output_banks) == [0]
        mic = client.input_banks[0]
        assert mic.name == "Mic In"
        assert mic.num_channels == 2
        assert mic.channels[0].display_name == "Mic 1"
        assert mic.channels[0].name is None
        assert mic.channels[0].phantom_power is False
        assert mic.channels[1].connection is True
        assert client.output_banks[0].channels[0].src == "0:0"

        assert {path for path, _ in client.find_key("ibank/0/ch/1")} == {
            "ext/ibank/0/ch/1/defaultName",
            "ext/ibank/0/ch/1/connection",
        }

    assert not client.is_connected


@pytest.mark.asyncio
async def test_device_changes_reach_subscribers_and_model() -> None:
    device = FakeMotuDevice()
    async with _client(device) as client:
        await client.connect()
        updates = client.updates()

        device.change({"ext/ibank/0/ch/0/48V": "bool:1", "ext/ibank/1/name": "ADAT In"})

        first = await asyncio.wait_for(updates.recv(), 2.0)
        second = await asyncio.wait_for(updates.recv(), 2.0)
        assert first.origin == second.origin == UpdateOrigin.EXTERNAL
        assert first.path == "ext/ibank/0/ch/0/48V"
        assert first.value == BoolValue(value=True)
        assert second.path == "ext/ibank/1/name"

        await _eventually(lambda: 1 in client.input_banks)
        assert client.input_banks[0].channels[0].phantom_power is True
        assert client.bank(BankDirection.INPUT, 1).name == "ADAT In"  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_write_is_sent_cached_and_announced_once() -> None:
    device = FakeMotuDevice()
    async with _client(device) as client:
        await client.connect()
        updates = client.updates()

        request = client.model.channel_trim_request(BankDirection.OUTPUT, 0, 0, -20)
        assert request is not None
        await client.set(request)

        assert device.patches == [{"ext/obank/0/ch/0/stereoTrim": -20}]
        assert device.datastore["ext/obank/0/ch/0/stereoTrim"] == -20
        assert client.get_value("ext/obank/0/ch/0/stereoTrim") == IntValue(value=-20)

        update = await asyncio.wait_for(updates.recv(), 1.0)
        assert update.origin == UpdateOrigin.INTERNAL
        assert update.path == "ext/obank/0/ch/0/stereoTrim"

        await _eventually(lambda: client.output_banks[0].channels[0].trim.value == -20)  # type: ignore[union-attr]

        # The device does not echo our own write back through the poll.
        await asyncio.sleep(device.poll_wait * 3)
        assert updates.pending == 0


@pytest.mark.asyncio
async def test_set_keys_and_name_requests() -> None:
    device = FakeMotuDevice()
    async with _client(device) as client:
        await client.connect()

        await client.set(
            [
                client.input_banks[0].set_name("Preamps"),
                client.input_banks[0].set_channel_name(0, "Kick"),
            ]
        )
        await client.set_keys({"ext/ibank/0/ch/0/pad": BoolValue(value=True)})

        assert device.patches == [
            {"ext/ibank/0/name": "Preamps", "ext/ibank/0/ch/0/name": "Kick"},
            {"ext/ibank/0/ch/0/pad": "bool:1"},
        ]
        await _eventually(lambda: client.input_banks[0].channels[0].pad is True)
        assert client.input_banks[0].name == "Preamps"
        assert client.input_banks[0].channels[0].display_name == "Kick"


@pytest.mark.asyncio
async def test_rejected_write_changes_nothing() -> None:
    device = FakeMotuDevice(write_status=400)
    async with _client(device) as client:
        await client.connect()
        updates = client.updates()

        with pytest.raises(MotuWriteRejectedError):
            await client.set(Request(path="ext/ibank/0/name", value=StringValue(value="Nope")))

        assert client.get_value("ext/ibank/0/name") == StringValue(value="Mic In")
        assert client.input_banks[0].name == "Mic In"
        assert updates.pending == 0


@pytest.mark.asyncio
async def test_external_only_model_ignores_own_writes() -> None:
    device = FakeMotuDevice()
    async with _client(device, model_update_origins=frozenset({UpdateOrigin.EXTERNAL})) as client:
        await client.connect()

        await client.set(client.input_banks[0].set_name("Local"))
        device.change({"ext/ibank/0/ch/0/pad": "bool:1"})

        await _eventually(lambda: client.input_banks[0].channels[0].pad is True)
        assert client.input_banks[0].name == "Mic In"
        assert client.get_value("ext/ibank/0/name") == StringValue(value="Local")


@pytest.mark.asyncio
async def test_model_requires_connection() -> None:
    device = FakeMotuDevice()
    async with _client(device) as client:
        with pytest.raises(MotuNotConnectedError):
            _ = client.input_banks
        with pytest.raises(MotuNotConnectedError):
            client.updates()
        with pytest.raises(MotuNotConnectedError):
            await client.wait_closed()

        await client.connect()
        with pytest.raises(MotuAlreadyConnectedError):
            await client.connect()

        await client.disconnect()
        with pytest.raises(MotuNotConnectedError):
            _ = client.model


@pytest.mark.asyncio
async def test_disconnect_ends_subscriptions() -> None:
    device = FakeMotuDevice()
    async with _client(device) as client:
        await client.connect()
        updates = client.updates()

        await client.disconnect()

        assert [update async for update in updates] == []
        assert not client.is_connected


@pytest.mark.asyncio
async def test_health_check_failure_aborts_connect() -> None:
    device = FakeMotuDevice(health_error=MotuTransportError("HTTP 503", status_code=503))
    async with _client(device) as client:
        with pytest.raises(MotuTransportError):
            await client.connect()

        assert not client.is_connected
        assert "poll" not in device.calls


@pytest.mark.asyncio
async def test_first_poll_failure_aborts_connect() -> None:
    device = FakeMotuDevice(poll_error=MotuTransportError("HTTP 500", status_code=500))
    async with _client(device) as client:
        with pytest.raises(MotuTransportError):
            await client.connect()

        assert not client.is_connected
        with pytest.raises(MotuNotConnectedError):
            _ = client.input_banks


@pytest.mark.asyncio
async def test_poll_failure_after_connect_is_observable() -> None:
    device = FakeMotuDevice()
    async with _client(device) as client:
        await client.connect()
        updates = client.updates()

        error = MotuTransportError("connection reset")
        device.poll_error = error

        with pytest.raises(MotuTransportError):
            await asyncio.wait_for(client.wait_closed(), 2.0)

        assert client.connection_error is error
        assert not client.is_connected
        assert [update async for update in updates] == []
        with pytest.raises(MotuNotConnectedError):
            client.updates()
        # The last synced state stays readable.
        assert client.get_value("ext/ibank/0/name") == StringValue(value="Mic In")
