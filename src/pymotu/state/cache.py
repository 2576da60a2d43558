"""Local mirror of the device datastore."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator

from pymotu.models.value import Value


class FlatCache:
    """Path -> value mirror of the whole datastore.

    Written by the poller and the write path, read by the model projector
    and by client lookups.  All access goes through an internal lock so
    readers on other threads never need their own locking.  Entries are
    only ever inserted or overwritten, never removed.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: dict[str, Value] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def get(self, path: str) -> Value | None:
        with self._lock:
            return self._entries.get(path)

    def insert(self, path: str, value: Value) -> None:
        with self._lock:
            self._entries[path] = value

    def insert_many(self, items: Iterable[tuple[str, Value]]) -> None:
        with self._lock:
            for path, value in items:
                self._entries[path] = value

    def snapshot(self) -> list[tuple[str, Value]]:
        """Point-in-time copy of every entry.

        Writers may proceed while the caller iterates the copy.
        """
        with self._lock:
            return list(self._entries.items())

    def __iter__(self) -> Iterator[tuple[str, Value]]:
        return iter(self.snapshot())

    def find(self, substring: str) -> list[tuple[str, Value]]:
        """All entries whose path contains *substring*."""
        with self._lock:
            return [(path, value) for path, value in self._entries.items() if substring in path]
