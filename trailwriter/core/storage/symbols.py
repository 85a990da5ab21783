"""Symbol registry: get-or-create for nodes, local symbols and files."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable
from datetime import datetime

from trailwriter.core.exceptions import DanglingReferenceError, InvalidSymbolKindError
from trailwriter.core.ids import IdAllocator
from trailwriter.core.logging import get_logger
from trailwriter.core.models import (
    DefinitionKind,
    LocalSymbol,
    NameElement,
    NameHierarchy,
    Node,
    NodeKind,
)
from trailwriter.core.names import DELIMITER_FILE, DELIMITER_UNKNOWN, encode_name
from trailwriter.core.storage.elements import element_exists, insert_element
from trailwriter.core.storage.files import FileStorage, normalize_path

logger = get_logger(__name__)


def coerce_node_kind(kind: NodeKind | int) -> NodeKind:
    """Validate ``kind`` against the schema's node kinds."""
    if isinstance(kind, NodeKind):
        return kind
    if isinstance(kind, bool) or not isinstance(kind, int):
        raise InvalidSymbolKindError(f"{kind!r} is not a node kind")
    try:
        return NodeKind(kind)
    except ValueError:
        raise InvalidSymbolKindError(f"{kind!r} is not a node kind") from None


def local_symbol_key(name: str, scope: str | None) -> str:
    """Persisted name of a local symbol; unique per (scope, name) pair."""
    return encode_name(
        NameHierarchy(DELIMITER_UNKNOWN, (NameElement(name=scope or ""), NameElement(name=name)))
    )


class SymbolRegistry:
    """Owns the mapping from structural identity to allocated id.

    Every lookup is a query against the open connection, so it sees the
    current transaction's own writes plus whatever was committed earlier,
    including by a previous session.
    """

    def __init__(
        self,
        get_connection: Callable[[], sqlite3.Connection],
        allocator: IdAllocator,
    ) -> None:
        self._get_connection = get_connection
        self._allocator = allocator
        self.files = FileStorage(get_connection)

    # ── Nodes ──

    def find_node(self, kind: NodeKind | int, serialized_name: str) -> int | None:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT id FROM node WHERE serialized_name = ? AND type = ? LIMIT 1",
            (serialized_name, int(coerce_node_kind(kind))),
        ).fetchone()
        return None if row is None else row["id"]

    def get_or_create_node(self, kind: NodeKind | int, hierarchy: NameHierarchy) -> int:
        """Return the id for (kind, name), inserting the node on first sight."""
        kind = coerce_node_kind(kind)
        serialized = encode_name(hierarchy)
        existing = self.find_node(kind, serialized)
        if existing is not None:
            return existing

        conn = self._get_connection()
        node_id = insert_element(conn, self._allocator)
        conn.execute(
            "INSERT INTO node(id, type, serialized_name) VALUES (?, ?, ?)",
            (node_id, int(kind), serialized),
        )
        logger.debug("node_created", id=node_id, kind=kind.name, name=hierarchy.qualified_name)
        return node_id

    def get_node(self, node_id: int) -> Node:
        """Get a node by id."""
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM node WHERE id = ?", (node_id,)).fetchone()
        if row is None:
            raise DanglingReferenceError(f"node with id {node_id} does not exist")
        return Node.from_row(row)

    def node_exists(self, node_id: int) -> bool:
        conn = self._get_connection()
        return conn.execute("SELECT 1 FROM node WHERE id = ?", (node_id,)).fetchone() is not None

    def element_exists(self, element_id: int) -> bool:
        return element_exists(self._get_connection(), element_id)

    def set_definition_kind(self, node_id: int, kind: DefinitionKind) -> None:
        """Record how the symbol's definition was seen; only ever upgrades."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT definition_kind FROM symbol WHERE id = ?", (node_id,)
        ).fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO symbol(id, definition_kind) VALUES (?, ?)", (node_id, int(kind))
            )
        elif row["definition_kind"] < kind:
            conn.execute(
                "UPDATE symbol SET definition_kind = ? WHERE id = ?", (int(kind), node_id)
            )

    # ── Local symbols ──

    def get_or_create_local_symbol(self, name: str, scope: str | None = None) -> int:
        """Return the id for ``name`` within ``scope``; other scopes never share it."""
        key = local_symbol_key(name, scope)
        conn = self._get_connection()
        row = conn.execute(
            "SELECT id FROM local_symbol WHERE name = ? LIMIT 1", (key,)
        ).fetchone()
        if row is not None:
            return row["id"]
        local_id = insert_element(conn, self._allocator)
        conn.execute("INSERT INTO local_symbol(id, name) VALUES (?, ?)", (local_id, key))
        return local_id

    def get_local_symbol(self, local_id: int) -> LocalSymbol:
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM local_symbol WHERE id = ?", (local_id,)).fetchone()
        if row is None:
            raise DanglingReferenceError(f"local symbol with id {local_id} does not exist")
        return LocalSymbol.from_row(row)

    # ── Files ──

    def get_or_create_file(
        self,
        path: str,
        *,
        language: str | None = None,
        content: str | None = None,
        modification_time: datetime | None = None,
        indexed: bool | None = None,
        complete: bool | None = None,
    ) -> int:
        """Return the id of the file at ``path``, merging in new attributes."""
        path = normalize_path(path)
        file_id = self.files.find_id(path)
        if file_id is not None:
            self.files.merge(
                file_id,
                language=language,
                content=content,
                modification_time=modification_time,
                indexed=indexed,
                complete=complete,
            )
            return file_id

        hierarchy = NameHierarchy(DELIMITER_FILE, (NameElement(name=path),))
        file_id = self.get_or_create_node(NodeKind.FILE, hierarchy)
        self.files.insert(
            file_id,
            path,
            language=language or "",
            modification_time=modification_time or datetime.now(),
            indexed=True if indexed is None else indexed,
            complete=True if complete is None else complete,
            content=content or "",
        )
        logger.debug("file_created", id=file_id, path=path)
        return file_id

    def file_exists(self, file_id: int) -> bool:
        return self.files.exists(file_id)
