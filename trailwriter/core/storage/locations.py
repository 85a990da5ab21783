"""Source location and indexer error storage."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from trailwriter.core.exceptions import DanglingReferenceError, InvalidLocationKindError
from trailwriter.core.ids import IdAllocator
from trailwriter.core.models import LocationKind, SourceLocation, SourceRange
from trailwriter.core.storage.elements import element_exists, insert_element


def coerce_location_kind(kind: LocationKind | int) -> LocationKind:
    """Validate ``kind`` against the schema's source location kinds."""
    if isinstance(kind, LocationKind):
        return kind
    if isinstance(kind, bool) or not isinstance(kind, int):
        raise InvalidLocationKindError(f"{kind!r} is not a source location kind")
    try:
        return LocationKind(kind)
    except ValueError:
        raise InvalidLocationKindError(f"{kind!r} is not a source location kind") from None


class LocationRecorder:
    """Ties elements to ranges of source files. Never deduplicates."""

    def __init__(
        self,
        get_connection: Callable[[], sqlite3.Connection],
        allocator: IdAllocator,
    ) -> None:
        self._get_connection = get_connection
        self._allocator = allocator

    def record(
        self,
        file_id: int,
        element_id: int,
        span: SourceRange,
        kind: LocationKind = LocationKind.TOKEN,
    ) -> int:
        """Insert a source location plus its occurrence row; return the location id."""
        span.validate()
        kind = coerce_location_kind(kind)
        conn = self._get_connection()
        if conn.execute("SELECT 1 FROM file WHERE id = ?", (file_id,)).fetchone() is None:
            raise DanglingReferenceError(f"file with id {file_id} does not exist")
        if not element_exists(conn, element_id):
            raise DanglingReferenceError(f"element with id {element_id} does not exist")

        location_id = self._allocator.next()
        conn.execute(
            """
            INSERT INTO source_location
                (id, file_node_id, start_line, start_column, end_line, end_column, type)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                location_id,
                file_id,
                span.start_line,
                span.start_column,
                span.end_line,
                span.end_column,
                int(kind),
            ),
        )
        conn.execute(
            "INSERT INTO occurrence(element_id, source_location_id) VALUES (?, ?)",
            (element_id, location_id),
        )
        return location_id

    def get(self, location_id: int) -> SourceLocation:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM source_location WHERE id = ?", (location_id,)
        ).fetchone()
        if row is None:
            raise DanglingReferenceError(f"source location with id {location_id} does not exist")
        return SourceLocation.from_row(row)

    def for_element(self, element_id: int) -> list[SourceLocation]:
        """All locations recorded for an element, in insertion order."""
        conn = self._get_connection()
        rows = conn.execute(
            """
            SELECT sl.* FROM source_location sl
            JOIN occurrence o ON o.source_location_id = sl.id
            WHERE o.element_id = ?
            ORDER BY sl.id
            """,
            (element_id,),
        ).fetchall()
        return [SourceLocation.from_row(row) for row in rows]

    def record_error(
        self,
        message: str,
        file_id: int,
        span: SourceRange,
        *,
        fatal: bool = False,
        translation_unit: str = "",
    ) -> int:
        """Store an indexer error and its location; return the error's element id."""
        span.validate()
        conn = self._get_connection()
        if conn.execute("SELECT 1 FROM file WHERE id = ?", (file_id,)).fetchone() is None:
            raise DanglingReferenceError(f"file with id {file_id} does not exist")
        error_id = insert_element(conn, self._allocator)
        conn.execute(
            """
            INSERT INTO error(id, message, fatal, indexed, translation_unit)
            VALUES (?, ?, ?, ?, ?)
            """,
            (error_id, message, fatal, True, translation_unit),
        )
        self.record(file_id, error_id, span, LocationKind.INDEXER_ERROR)
        return error_id
