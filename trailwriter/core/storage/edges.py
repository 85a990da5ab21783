"""Edge storage operations."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable

from trailwriter.core.exceptions import DanglingReferenceError, InvalidEdgeKindError
from trailwriter.core.ids import IdAllocator
from trailwriter.core.logging import get_logger
from trailwriter.core.models import ComponentKind, Edge, EdgeKind
from trailwriter.core.storage.elements import insert_element

logger = get_logger(__name__)


def coerce_edge_kind(kind: EdgeKind | int) -> EdgeKind:
    """Validate ``kind`` against the schema's edge kinds."""
    if isinstance(kind, EdgeKind):
        return kind
    if isinstance(kind, bool) or not isinstance(kind, int):
        raise InvalidEdgeKindError(f"{kind!r} is not an edge kind")
    try:
        return EdgeKind(kind)
    except ValueError:
        raise InvalidEdgeKindError(f"{kind!r} is not an edge kind") from None


class EdgeRecorder:
    """Records typed relationships between two existing nodes."""

    def __init__(
        self,
        get_connection: Callable[[], sqlite3.Connection],
        allocator: IdAllocator,
    ) -> None:
        self._get_connection = get_connection
        self._allocator = allocator

    def record(self, kind: EdgeKind, source_id: int, target_id: int) -> int:
        """Insert an edge and return its id; an identical edge is returned as-is."""
        kind = coerce_edge_kind(kind)
        conn = self._get_connection()
        self._require_node(conn, source_id, "source")
        self._require_node(conn, target_id, "target")

        row = conn.execute(
            """
            SELECT id FROM edge
            WHERE type = ? AND source_node_id = ? AND target_node_id = ?
            LIMIT 1
            """,
            (int(kind), source_id, target_id),
        ).fetchone()
        if row is not None:
            return row["id"]

        edge_id = insert_element(conn, self._allocator)
        conn.execute(
            "INSERT INTO edge(id, type, source_node_id, target_node_id) VALUES (?, ?, ?, ?)",
            (edge_id, int(kind), source_id, target_id),
        )
        logger.debug("edge_created", id=edge_id, kind=kind.name, source=source_id, target=target_id)
        return edge_id

    def get(self, edge_id: int) -> Edge:
        """Get an edge by id."""
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM edge WHERE id = ?", (edge_id,)).fetchone()
        if row is None:
            raise DanglingReferenceError(f"edge with id {edge_id} does not exist")
        return Edge.from_row(row)

    def mark_ambiguous(self, edge_id: int) -> None:
        """Flag a reference whose target could not be resolved uniquely."""
        conn = self._get_connection()
        if conn.execute("SELECT 1 FROM edge WHERE id = ?", (edge_id,)).fetchone() is None:
            raise DanglingReferenceError(f"edge with id {edge_id} does not exist")
        already = conn.execute(
            "SELECT 1 FROM element_component WHERE element_id = ? AND type = ?",
            (edge_id, int(ComponentKind.IS_AMBIGUOUS)),
        ).fetchone()
        if already is None:
            conn.execute(
                "INSERT INTO element_component(id, element_id, type, data) VALUES (NULL, ?, ?, '')",
                (edge_id, int(ComponentKind.IS_AMBIGUOUS)),
            )

    @staticmethod
    def _require_node(conn: sqlite3.Connection, node_id: int, role: str) -> None:
        if conn.execute("SELECT 1 FROM node WHERE id = ?", (node_id,)).fetchone() is None:
            raise DanglingReferenceError(f"{role} node with id {node_id} does not exist")
