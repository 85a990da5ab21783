"""Identifier allocation shared by all entity tables."""

from __future__ import annotations

import sqlite3
import threading

# Tables whose primary keys are drawn from the allocator.
_ID_TABLES = ("element", "source_location")


class IdAllocator:
    """Issues strictly increasing ids, never reusing one.

    Ids handed out inside a transaction that is later rolled back are simply
    skipped; the next call still returns a larger value.
    """

    def __init__(self, start: int = 1) -> None:
        if start < 1:
            raise ValueError("ids start at 1")
        self._next = start
        self._lock = threading.Lock()

    @classmethod
    def seeded(cls, conn: sqlite3.Connection) -> IdAllocator:
        """Start one past the largest id already stored in ``conn``."""
        return cls(_highest_id(conn) + 1)

    def sync(self, conn: sqlite3.Connection) -> None:
        """Skip past ids another writer has stored since we last looked.

        Called once the write lock is held, so nothing can be inserted
        between the read and our own inserts.
        """
        floor = _highest_id(conn) + 1
        with self._lock:
            if floor > self._next:
                self._next = floor

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
        return value

    def peek(self) -> int:
        """The id the next call to ``next`` will return."""
        with self._lock:
            return self._next


def _highest_id(conn: sqlite3.Connection) -> int:
    highest = 0
    for table in _ID_TABLES:
        row = conn.execute(f"SELECT MAX(id) FROM {table}").fetchone()
        if row[0] is not None:
            highest = max(highest, row[0])
    return highest
