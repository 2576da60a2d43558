"""Typed datastore values.

The datastore transfers JSON scalars, but packs richer types into strings
(``bool:1``, ``enum:2:0=Off:1=On``, ``0:3``).  Once decoded by
:mod:`pymotu.codec`, a value is one of the variants below.  All variants
are frozen and carry a ``kind`` discriminator so a :data:`Value` can be
validated from a plain dict.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Annotated, Literal

from pydantic import Field

from pymotu.models._base import MotuBaseModel

__all__ = [
    "BoolValue",
    "EnumValue",
    "FloatValue",
    "IntValue",
    "PairValue",
    "StringValue",
    "Value",
]


class _DatastoreValue(MotuBaseModel):
    @abstractmethod
    def encode(self) -> str:
        """Datastore string form of the value."""

    def as_str(self) -> str:
        """String form of the value, as stored in the datastore."""
        return self.encode()

    def __str__(self) -> str:
        return self.encode()


class StringValue(_DatastoreValue):
    kind: Literal["string"] = "string"
    value: str

    def encode(self) -> str:
        return self.value


class FloatValue(_DatastoreValue):
    kind: Literal["float"] = "float"
    value: float

    def encode(self) -> str:
        return str(self.value)


class IntValue(_DatastoreValue):
    kind: Literal["int"] = "int"
    value: int

    def encode(self) -> str:
        return str(self.value)


class BoolValue(_DatastoreValue):
    kind: Literal["bool"] = "bool"
    value: bool

    def encode(self) -> str:
        return "bool:1" if self.value else "bool:0"


class EnumValue(_DatastoreValue):
    """An enumerated setting: the selected key plus every ``(key, label)`` option."""

    kind: Literal["enum"] = "enum"
    selected: int
    options: tuple[tuple[int, str], ...] = ()

    @property
    def label(self) -> str | None:
        """Label of the selected option, if the device listed it."""
        for key, label in self.options:
            if key == self.selected:
                return label
        return None

    def encode(self) -> str:
        # Writes only carry the selection.
        return str(self.selected)


class PairValue(_DatastoreValue):
    """A ``:``-delimited compound value, e.g. a ``bank:channel`` route or a range."""

    kind: Literal["pair"] = "pair"
    items: tuple[str, ...]

    def encode(self) -> str:
        return ":".join(self.items)


Value = Annotated[
    StringValue | FloatValue | IntValue | BoolValue | EnumValue | PairValue,
    Field(discriminator="kind"),
]
"""Tagged union over every datastore value variant."""
