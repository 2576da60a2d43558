"""Pending datastore writes."""

from __future__ import annotations

from pydantic import field_validator

from pymotu.models._base import MotuBaseModel
from pymotu.models.value import Value


class Request(MotuBaseModel):
    """A single ``path = value`` write.

    Paths may be relative while a request is being built (``3/trim``);
    :func:`join_requests` nests them under an outer prefix.
    """

    path: str
    value: Value

    @field_validator("path")
    @classmethod
    def _path_non_empty(cls, value: str) -> str:
        path = value.strip().strip("/")
        if not path:
            raise ValueError("path must be non-empty")
        return path

    def as_pair(self) -> tuple[str, Value]:
        return self.path, self.value


def join_requests(outer: Request, inner: Request) -> Request:
    """Nest *inner* under *outer*: ``outer.path/inner.path`` with *inner*'s value."""
    return Request(path=f"{outer.path}/{inner.path}", value=inner.value)
