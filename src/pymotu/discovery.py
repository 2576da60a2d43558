"""Device identity and the discovery interface.

Finding interfaces on the network (mDNS ``_http._tcp`` browsing) is left
to an external :class:`Discoverer`; this module only describes what it
must return and how a client is built from it.
"""

from __future__ import annotations

import enum
from typing import TYPE_CHECKING, Any, Protocol

from pymotu._constants import DEFAULT_PORT
from pymotu.config import MotuConfig
from pymotu.models._base import MotuBaseModel

if TYPE_CHECKING:
    from pymotu.client import MotuClient


class DeviceType(enum.StrEnum):
    HOST = "Host"
    DEVICE = "Device"
    UNKNOWN = "Unknown"

    @classmethod
    def from_mdns(cls, value: str) -> DeviceType:
        """Map the ``motu.mdns.type`` TXT record to a device type."""
        if value == "netiodevice":
            return cls.DEVICE
        if value == "netiohost":
            return cls.HOST
        return cls.UNKNOWN


class DeviceInfo(MotuBaseModel):
    """Where to reach an interface and what it is."""

    name: str
    hostname: str
    port: int = DEFAULT_PORT
    uid: str = ""
    device_type: DeviceType = DeviceType.UNKNOWN

    @classmethod
    def from_json(cls, data: str | bytes) -> DeviceInfo:
        return cls.model_validate_json(data)

    def to_json(self) -> str:
        return self.model_dump_json()

    def to_config(self, **overrides: Any) -> MotuConfig:
        return MotuConfig(host=self.hostname, port=self.port, **overrides)

    def __str__(self) -> str:
        return f'Name: "{self.name}"  Type: {self.device_type.value}  Hostname: {self.hostname}:{self.port}'


class Discoverer(Protocol):
    """Resolves a human-readable device name on the local network."""

    async def discover(self, name: str, timeout: float) -> DeviceInfo:
        ...


async def connect_by_name(
    discoverer: Discoverer,
    name: str,
    *,
    timeout: float = 10.0,
    **client_kwargs: Any,
) -> MotuClient:
    """Resolve *name* and return a client for it (not yet entered or connected)."""
    from pymotu.client import MotuClient

    device = await discoverer.discover(name, timeout)
    return MotuClient.from_device(device, **client_kwargs)
