"""pymotu - Async Python client for the MOTU AVB datastore API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pymotu")
except PackageNotFoundError:
    __version__ = "0+local"
from pymotu.client import MotuClient
from pymotu.config import MotuConfig
from pymotu.discovery import DeviceInfo, DeviceType, Discoverer, connect_by_name
from pymotu.exceptions import (
    MotuAlreadyConnectedError,
    MotuConfigError,
    MotuDecodeError,
    MotuError,
    MotuNotConnectedError,
    MotuPathParseError,
    MotuTransportError,
    MotuUpdatesClosedError,
    MotuUpdatesLaggedError,
    MotuWriteRejectedError,
)
from pymotu.models import (
    Bank,
    BankDirection,
    BoolValue,
    Channel,
    EnumValue,
    FloatValue,
    IntValue,
    PairValue,
    Request,
    StringValue,
    Trim,
    TrimKind,
    Value,
    join_requests,
)
from pymotu.state.bus import Subscription
from pymotu.state.events import Update, UpdateOrigin

__all__ = [
    "__version__",
    "Bank",
    "BankDirection",
    "BoolValue",
    "Channel",
    "DeviceInfo",
    "DeviceType",
    "Discoverer",
    "EnumValue",
    "FloatValue",
    "IntValue",
    "MotuAlreadyConnectedError",
    "MotuClient",
    "MotuConfig",
    "MotuConfigError",
    "MotuDecodeError",
    "MotuError",
    "MotuNotConnectedError",
    "MotuPathParseError",
    "MotuTransportError",
    "MotuUpdatesClosedError",
    "MotuUpdatesLaggedError",
    "MotuWriteRejectedError",
    "PairValue",
    "Request",
    "StringValue",
    "Subscription",
    "Trim",
    "TrimKind",
    "Update",
    "UpdateOrigin",
    "Value",
    "connect_by_name",
    "join_requests",
]
