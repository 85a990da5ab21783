"""Rows of the ``element`` table, the id space shared by nodes, edges and errors."""

from __future__ import annotations

import sqlite3

from trailwriter.core.ids import IdAllocator


def insert_element(conn: sqlite3.Connection, allocator: IdAllocator) -> int:
    """Allocate an id and insert its ``element`` row."""
    element_id = allocator.next()
    conn.execute("INSERT INTO element(id) VALUES(?)", (element_id,))
    return element_id


def element_exists(conn: sqlite3.Connection, element_id: int) -> bool:
    row = conn.execute("SELECT 1 FROM element WHERE id = ?", (element_id,)).fetchone()
    return row is not None
