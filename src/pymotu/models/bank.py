"""Bank and channel model projected from the flat datastore.

Paths under ``ext/<ibank|obank>/<bank>/`` describe the interface's input
and output banks::

    ext/ibank/0/name                 bank attribute
    ext/ibank/0/ch/2/stereoTrim      channel attribute

The attribute names understood at each level are closed sets
(:class:`BankAttribute`, :class:`ChannelAttribute`).  Anything else is
ignored so newer firmware keys never break the projection.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from typing import NamedTuple

from pydantic import Field

from pymotu._constants import EXT_ROOT
from pymotu.codec import as_bool, as_int, as_range, as_text, parse_index
from pymotu.exceptions import MotuPathParseError
from pymotu.models._base import MotuMutableModel
from pymotu.models.request import Request, join_requests
from pymotu.models.value import IntValue, StringValue, Value

_logger = logging.getLogger(__name__)

__all__ = [
    "Bank",
    "BankAttribute",
    "BankDirection",
    "BankKey",
    "Channel",
    "ChannelAttribute",
    "Trim",
    "TrimKind",
    "parse_bank_path",
]


class _PathSegmentEnum(enum.StrEnum):
    @classmethod
    def parse(cls, segment: str) -> _PathSegmentEnum | None:
        """Member for *segment*, or ``None`` if the segment is not a known one."""
        try:
            return cls(segment)
        except ValueError:
            return None


class BankDirection(_PathSegmentEnum):
    """Input or output bank, named after its path segment."""

    INPUT = "ibank"
    OUTPUT = "obank"


class BankAttribute(_PathSegmentEnum):
    NAME = "name"
    NUM_CHANNELS = "numCh"
    MAX_CHANNELS = "maxCh"
    USER_CHANNELS = "userCh"
    ACTIVE_CHANNELS = "calcCh"
    SMUX = "smux"
    CHANNEL = "ch"


class ChannelAttribute(_PathSegmentEnum):
    DEFAULT_NAME = "defaultName"
    NAME = "name"
    SRC = "src"
    TRIM = "trim"
    TRIM_RANGE = "trimRange"
    STEREO_TRIM = "stereoTrim"
    STEREO_TRIM_RANGE = "stereoTrimRange"
    PAD = "pad"
    PHASE = "phase"
    PHANTOM_POWER = "48V"
    CONNECTION = "connection"


class TrimKind(enum.StrEnum):
    MONO = "mono"
    STEREO = "stereo"


class Trim(MotuMutableModel):
    """Trim setting of a channel.

    ``kind`` is fixed the first time either trim flavour is seen; the
    hardware never changes a channel's stereo-ness while connected.
    """

    kind: TrimKind = Field(frozen=True)
    value: int = 0
    """Trim in dB, within ``trim_range``."""
    trim_range: tuple[int, int] = (0, 0)


class Channel(MotuMutableModel):
    """One channel of a bank.

    Every attribute is optional; the device only reports what the
    channel's hardware supports.
    """

    index: int = Field(frozen=True, ge=0)
    default_name: str | None = None
    name: str | None = None
    src: str | None = None
    """``bank:channel`` route feeding an output channel, ``None`` if unrouted."""
    trim: Trim | None = None
    pad: bool | None = None
    phase: bool | None = None
    """Phase inversion, only on some channels."""
    phantom_power: bool | None = None
    """48V phantom power, only on some input channels."""
    connection: bool | None = None
    """Whether a physical connector is plugged in, where the device can tell."""

    @property
    def display_name(self) -> str:
        return self.name or self.default_name or ""

    def update(self, segments: Sequence[str], value: Value) -> None:
        """Apply a channel attribute; *segments* start at the attribute name."""
        if not segments:
            raise MotuPathParseError(f"missing attribute for channel {self.index}")
        if len(segments) != 1:
            return
        key = segments[0]
        attr = ChannelAttribute.parse(key)
        if attr is None:
            return

        if attr is ChannelAttribute.DEFAULT_NAME:
            self.default_name = as_text(value)
        elif attr is ChannelAttribute.NAME:
            self.name = as_text(value)
        elif attr is ChannelAttribute.SRC:
            self.src = as_text(value)
        elif attr is ChannelAttribute.TRIM:
            self._set_trim(TrimKind.MONO, value=as_int(value, key))
        elif attr is ChannelAttribute.TRIM_RANGE:
            self._set_trim(TrimKind.MONO, trim_range=as_range(value, key))
        elif attr is ChannelAttribute.STEREO_TRIM:
            self._set_trim(TrimKind.STEREO, value=as_int(value, key))
        elif attr is ChannelAttribute.STEREO_TRIM_RANGE:
            self._set_trim(TrimKind.STEREO, trim_range=as_range(value, key))
        elif attr is ChannelAttribute.PAD:
            self.pad = as_bool(value, key)
        elif attr is ChannelAttribute.PHASE:
            self.phase = as_bool(value, key)
        elif attr is ChannelAttribute.PHANTOM_POWER:
            self.phantom_power = as_bool(value, key)
        elif attr is ChannelAttribute.CONNECTION:
            self.connection = as_bool(value, key)

    def _set_trim(
        self,
        kind: TrimKind,
        *,
        value: int | None = None,
        trim_range: tuple[int, int] | None = None,
    ) -> None:
        if self.trim is None:
            self.trim = Trim(kind=kind)
        elif self.trim.kind != kind:
            _logger.debug("Ignoring %s trim for %s trim channel %d", kind, self.trim.kind, self.index)
            return
        if value is not None:
            self.trim.value = value
        if trim_range is not None:
            self.trim.trim_range = trim_range

    def set_trim(self, trim: int) -> Request | None:
        """Request setting this channel's trim, relative to the bank's ``ch`` path.

        ``None`` until the channel's trim kind is known.
        """
        if self.trim is None:
            return None
        attr = ChannelAttribute.TRIM if self.trim.kind == TrimKind.MONO else ChannelAttribute.STEREO_TRIM
        return Request(path=f"{self.index}/{attr.value}", value=IntValue(value=trim))

    def __str__(self) -> str:
        parts = [f"{self.display_name}:"]
        if self.src is not None:
            parts.append(f"Source: {self.src}")
        if self.trim is not None:
            label = "Stereo Trim" if self.trim.kind == TrimKind.STEREO else "Trim"
            parts.append(f"{label}: {self.trim.value}, Range: {self.trim.trim_range[0]}:{self.trim.trim_range[1]}")
        for label, flag in (
            ("Phantom Power", self.phantom_power),
            ("Pad", self.pad),
            ("Phase", self.phase),
            ("Connection", self.connection),
        ):
            if flag is not None:
                parts.append(f"{label}: {flag}")
        return " ".join(parts)


class Bank(MotuMutableModel):
    """An input or output bank and its channels.

    ``index`` and ``direction`` never change once the bank exists.
    """

    index: int = Field(frozen=True, ge=0)
    direction: BankDirection = Field(frozen=True)
    name: str | None = None
    smux: str | None = None
    """Optical bank format.  Documented as ``toslink``/``adat``, devices also report ``standard``."""
    num_channels: int = 0
    """Channels available at the current sample rate."""
    max_channels: int = 0
    user_channels: int = 0
    """Channels the user has enabled."""
    active_channels: int = 0
    channels: dict[int, Channel] = Field(default_factory=dict)

    @property
    def path(self) -> str:
        return f"{EXT_ROOT}/{self.direction.value}/{self.index}"

    def update(self, segments: Sequence[str], value: Value) -> None:
        """Apply a bank or channel attribute; *segments* start after the bank index.

        Raises :class:`MotuPathParseError` for malformed channel paths and
        :class:`pymotu.exceptions.MotuDecodeError` for values of the wrong type.
        """
        if not segments:
            raise MotuPathParseError(f"missing attribute for bank {self.path}", path=self.path)
        key = segments[0]
        attr = BankAttribute.parse(key)
        if attr is None:
            return

        if attr is BankAttribute.CHANNEL:
            self._update_channel(segments[1:], value)
            return
        if len(segments) != 1:
            return

        if attr is BankAttribute.NAME:
            self.name = as_text(value)
        elif attr is BankAttribute.NUM_CHANNELS:
            self.num_channels = as_int(value, key)
        elif attr is BankAttribute.MAX_CHANNELS:
            self.max_channels = as_int(value, key)
        elif attr is BankAttribute.USER_CHANNELS:
            self.user_channels = as_int(value, key)
        elif attr is BankAttribute.ACTIVE_CHANNELS:
            self.active_channels = as_int(value, key)
        elif attr is BankAttribute.SMUX:
            self.smux = as_text(value)

    def _update_channel(self, segments: Sequence[str], value: Value) -> None:
        channel_path = f"{self.path}/ch/{'/'.join(segments)}"
        if len(segments) < 2:
            raise MotuPathParseError(f"channel path needs an index and an attribute: {channel_path}", path=channel_path)
        index = parse_index(segments[0])
        if index is None:
            raise MotuPathParseError(f"channel index is not a non-negative integer: {channel_path}", path=channel_path)

        channel = self.channels.get(index)
        if channel is None:
            channel = Channel(index=index)
            self.channels[index] = channel
        channel.update(segments[1:], value)

    # ------------------------------------------------------------------
    # Request builders
    # ------------------------------------------------------------------

    def set_name(self, name: str) -> Request:
        return Request(path=f"{self.path}/{BankAttribute.NAME.value}", value=StringValue(value=name))

    def set_channel_name(self, index: int, name: str) -> Request:
        return Request(
            path=f"{self.path}/{BankAttribute.CHANNEL.value}/{index}/{ChannelAttribute.NAME.value}",
            value=StringValue(value=name),
        )

    def set_channel_trim(self, index: int, trim: int) -> Request | None:
        """Request setting a channel's trim.

        ``None`` if the channel is unknown or its trim kind has not been
        reported yet, since the key differs between mono and stereo trim.
        """
        channel = self.channels.get(index)
        if channel is None:
            return None
        inner = channel.set_trim(trim)
        if inner is None:
            return None
        outer = Request(path=f"{self.path}/{BankAttribute.CHANNEL.value}", value=inner.value)
        return join_requests(outer, inner)

    def __str__(self) -> str:
        name = f" {self.name}," if self.name is not None else " -"
        lines = [
            f"{self.index}:{name}  Channels: {self.num_channels}, "
            f"Active Channels: {self.active_channels}, Max Channels: {self.max_channels}"
        ]
        lines.extend(f"- {index}: {channel}" for index, channel in sorted(self.channels.items()))
        return "\n".join(lines)


class BankKey(NamedTuple):
    """A datastore path routed to a bank."""

    direction: BankDirection
    index: int
    segments: tuple[str, ...]


def parse_bank_path(path: str) -> BankKey | None:
    """Route *path* to a bank.

    Returns ``None`` for paths outside ``ext/ibank`` and ``ext/obank``.
    Raises :class:`MotuPathParseError` when the bank index is malformed or
    no attribute follows it.
    """
    segments = path.strip("/").split("/")
    if len(segments) < 2 or segments[0] != EXT_ROOT:
        return None
    direction = BankDirection.parse(segments[1])
    if direction is None:
        return None
    if len(segments) < 4:
        raise MotuPathParseError(f"bank path needs an index and an attribute: {path}", path=path)
    index = parse_index(segments[2])
    if index is None:
        raise MotuPathParseError(f"bank index is not a non-negative integer: {path}", path=path)
    return BankKey(direction=direction, index=index, segments=tuple(segments[3:]))
