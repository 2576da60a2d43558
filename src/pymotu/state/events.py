"""Datastore change notifications.

Every change applied to the flat cache is announced as an :class:`Update`
tagged with where it came from: our own write (``INTERNAL``) or an
independent change observed through the long poll (``EXTERNAL``).
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import Field

from pymotu.models._base import MotuBaseModel
from pymotu.models.value import Value


class UpdateOrigin(StrEnum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class Update(MotuBaseModel):
    """A single path/value change seen on the update bus."""

    origin: UpdateOrigin
    path: str
    value: Value
    observed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def internal(cls, path: str, value: Value) -> Update:
        return cls(origin=UpdateOrigin.INTERNAL, path=path, value=value)

    @classmethod
    def external(cls, path: str, value: Value) -> Update:
        return cls(origin=UpdateOrigin.EXTERNAL, path=path, value=value)

    @property
    def is_internal(self) -> bool:
        return self.origin == UpdateOrigin.INTERNAL

    def as_pair(self) -> tuple[str, Value]:
        return self.path, self.value
