"""Custom exception hierarchy for pymotu."""

from __future__ import annotations

from typing import Any


class MotuError(Exception):
    """Base exception for all pymotu errors."""


class MotuConfigError(MotuError):
    """Invalid or missing configuration."""


class MotuTransportError(MotuError):
    """HTTP-level failure (network, unexpected status, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        url: str = "",
    ) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class MotuDecodeError(MotuError):
    """A datastore value could not be decoded or coerced.

    Recoverable: the offending key is skipped and processing continues
    with the remaining keys.
    """

    def __init__(self, message: str, *, key: str = "", raw: Any = None) -> None:
        self.key = key
        self.raw = raw
        super().__init__(message)


class MotuPathParseError(MotuError):
    """A datastore path could not be routed into the bank/channel model."""

    def __init__(self, message: str, *, path: str = "") -> None:
        self.path = path
        super().__init__(message)


class MotuNotConnectedError(MotuError):
    """Model or update access before a successful ``connect()``."""


class MotuAlreadyConnectedError(MotuError):
    """``connect()`` called on a client that is already connected."""


class MotuWriteRejectedError(MotuError):
    """The device answered a write with a non-success status.

    The write was not applied to the local cache; callers may retry.
    """

    def __init__(self, message: str, *, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class MotuUpdatesLaggedError(MotuError):
    """A subscriber fell behind and updates were dropped for it.

    Raised once per gap; the subscription remains usable and continues
    with the updates that arrived after the gap.
    """

    def __init__(self, missed: int) -> None:
        self.missed = missed
        super().__init__(f"subscriber lagged behind, {missed} update(s) dropped")


class MotuUpdatesClosedError(MotuError):
    """The update bus was closed (client disconnected or poller failed)."""
