"""Connection handling, schema and transactions for the index database."""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from trailwriter.core.exceptions import DatabaseError
from trailwriter.core.logging import get_logger

logger = get_logger(__name__)

DB_EXTENSION = ".srctrldb"
PROJECT_EXTENSION = ".srctrlprj"
STORAGE_VERSION = 25

PROJECT_SETTINGS_XML = """<?xml version="1.0" encoding="utf-8"?>
<config>
    <version>0</version>
</config>"""

# Table layout is fixed by the consumer; do not change column names or order.
_SCHEMA = """
CREATE TABLE IF NOT EXISTS element(
    id INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS element_component(
    id INTEGER PRIMARY KEY,
    element_id INTEGER,
    type INTEGER,
    data TEXT,
    FOREIGN KEY(element_id) REFERENCES element(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS edge(
    id INTEGER PRIMARY KEY,
    type INTEGER,
    source_node_id INTEGER,
    target_node_id INTEGER,
    FOREIGN KEY(id) REFERENCES element(id) ON DELETE CASCADE,
    FOREIGN KEY(source_node_id) REFERENCES node(id) ON DELETE CASCADE,
    FOREIGN KEY(target_node_id) REFERENCES node(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS node(
    id INTEGER PRIMARY KEY,
    type INTEGER,
    serialized_name TEXT,
    FOREIGN KEY(id) REFERENCES element(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS symbol(
    id INTEGER PRIMARY KEY,
    definition_kind INTEGER,
    FOREIGN KEY(id) REFERENCES node(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS file(
    id INTEGER PRIMARY KEY,
    path TEXT,
    language TEXT,
    modification_time TEXT,
    indexed BOOLEAN,
    complete BOOLEAN,
    line_count INTEGER,
    FOREIGN KEY(id) REFERENCES node(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS filecontent(
    id INTEGER PRIMARY KEY,
    content TEXT,
    FOREIGN KEY(id) REFERENCES file(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS local_symbol(
    id INTEGER PRIMARY KEY,
    name TEXT,
    FOREIGN KEY(id) REFERENCES element(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS source_location(
    id INTEGER PRIMARY KEY,
    file_node_id INTEGER,
    start_line INTEGER,
    start_column INTEGER,
    end_line INTEGER,
    end_column INTEGER,
    type INTEGER,
    FOREIGN KEY(file_node_id) REFERENCES node(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS occurrence(
    element_id INTEGER,
    source_location_id INTEGER,
    PRIMARY KEY(element_id, source_location_id),
    FOREIGN KEY(element_id) REFERENCES element(id) ON DELETE CASCADE,
    FOREIGN KEY(source_location_id) REFERENCES source_location(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS component_access(
    node_id INTEGER PRIMARY KEY,
    type INTEGER,
    FOREIGN KEY(node_id) REFERENCES node(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS error(
    id INTEGER PRIMARY KEY,
    message TEXT,
    fatal BOOLEAN,
    indexed BOOLEAN,
    translation_unit TEXT,
    FOREIGN KEY(id) REFERENCES element(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS meta(
    id INTEGER PRIMARY KEY,
    key TEXT,
    value TEXT
);

CREATE INDEX IF NOT EXISTS node_serialized_name_index ON node(serialized_name);
CREATE INDEX IF NOT EXISTS edge_source_node_id_index ON edge(source_node_id);
CREATE INDEX IF NOT EXISTS edge_target_node_id_index ON edge(target_node_id);
CREATE INDEX IF NOT EXISTS file_path_index ON file(path);
CREATE INDEX IF NOT EXISTS local_symbol_name_index ON local_symbol(name);
"""

# Cleared by ``Database.clear``; meta survives.
_DATA_TABLES = (
    "occurrence",
    "source_location",
    "element_component",
    "component_access",
    "error",
    "filecontent",
    "file",
    "symbol",
    "edge",
    "local_symbol",
    "node",
    "element",
)

_COUNTED_TABLES = ("node", "edge", "file", "local_symbol", "source_location", "error")


def normalize_db_path(path: Path | str) -> Path:
    """Force the consumer's database extension onto ``path``."""
    path = Path(path)
    if path.suffix != DB_EXTENSION:
        path = path.with_suffix(DB_EXTENSION)
    return path


class Database:
    """A single SQLite connection with nested transaction support.

    The outermost ``transaction`` issues ``BEGIN IMMEDIATE``; nested ones use
    savepoints, so an inner failure only undoes the inner block.

    If SQLite abandons the whole transaction on its own (disk full, I/O
    error) while inner levels are still open, the database is marked
    ``aborted``: enclosing levels then unwind without touching SQLite,
    committing them raises, and no new level can be opened until they have.
    """

    def __init__(self, path: Path, *, busy_timeout: float = 5.0, foreign_keys: bool = True) -> None:
        self.path = path
        self._depth = 0
        self._aborted = False
        self._begin_hooks: list[Callable[[sqlite3.Connection], None]] = []
        try:
            self._conn: sqlite3.Connection | None = sqlite3.connect(
                str(path), timeout=busy_timeout, isolation_level=None
            )
            self._conn.row_factory = sqlite3.Row
            if foreign_keys:
                self._conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            raise DatabaseError(f"cannot open {path}: {exc}") from exc

    def get_connection(self) -> sqlite3.Connection:
        """Return the live connection."""
        if self._conn is None:
            raise DatabaseError(f"database {self.path} is closed")
        return self._conn

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @property
    def depth(self) -> int:
        """Number of transaction levels currently open."""
        return self._depth

    @property
    def aborted(self) -> bool:
        """True while open levels belong to a transaction SQLite already rolled back."""
        return self._aborted

    def on_begin(self, hook: Callable[[sqlite3.Connection], None]) -> None:
        """Run ``hook`` each time an outermost transaction acquires the write lock."""
        self._begin_hooks.append(hook)

    def begin(self) -> None:
        """Open a transaction level without a ``with`` block."""
        if self._aborted:
            raise DatabaseError(
                "the enclosing transaction was rolled back by SQLite; roll it back first"
            )
        conn = self.get_connection()
        try:
            if self._depth == 0:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    for hook in self._begin_hooks:
                        hook(conn)
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
            else:
                conn.execute(f"SAVEPOINT tw_{self._depth}")
        except sqlite3.Error as exc:
            raise DatabaseError(f"cannot begin transaction: {exc}") from exc
        self._depth += 1

    def commit(self) -> None:
        """Commit (or release) the innermost open level."""
        if self._depth == 0:
            raise DatabaseError("no transaction is open")
        self._depth -= 1
        if self._aborted:
            self._unwind_aborted()
            raise DatabaseError("cannot commit: the transaction was rolled back by SQLite")
        conn = self.get_connection()
        try:
            if self._depth == 0:
                conn.execute("COMMIT")
            else:
                conn.execute(f"RELEASE tw_{self._depth}")
        except sqlite3.Error as exc:
            self._undo(self._depth)
            raise DatabaseError(f"cannot commit transaction: {exc}") from exc

    def rollback(self) -> None:
        """Discard everything written at the innermost open level."""
        if self._depth == 0:
            raise DatabaseError("no transaction is open")
        self._depth -= 1
        if self._aborted:
            self._unwind_aborted()
            return
        self._undo(self._depth)

    def _unwind_aborted(self) -> None:
        if self._depth == 0:
            self._aborted = False

    def _undo(self, depth: int) -> None:
        conn = self.get_connection()
        if not conn.in_transaction:
            # SQLite already rolled back the whole transaction on its own.
            if depth > 0:
                self._aborted = True
                logger.warning("transaction_lost", path=str(self.path), open_levels=depth)
            return
        try:
            if depth == 0:
                conn.execute("ROLLBACK")
            else:
                conn.execute(f"ROLLBACK TO tw_{depth}")
                conn.execute(f"RELEASE tw_{depth}")
        except sqlite3.Error as exc:
            raise DatabaseError(f"rollback failed: {exc}") from exc
        logger.debug("transaction_rolled_back", depth=depth)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block atomically; any exception rolls it back."""
        self.begin()
        try:
            yield self.get_connection()
        except sqlite3.Error as exc:
            self.rollback()
            raise DatabaseError(str(exc)) from exc
        except BaseException:
            self.rollback()
            raise
        self.commit()

    def create_schema(self) -> None:
        """Create all tables and write the meta rows of a fresh database."""
        conn = self.get_connection()
        try:
            conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise DatabaseError(f"cannot create schema in {self.path}: {exc}") from exc
        with self.transaction() as tx:
            tx.execute(
                "INSERT INTO meta(id, key, value) VALUES(NULL, ?, ?)",
                ("storage_version", str(STORAGE_VERSION)),
            )
            tx.execute(
                "INSERT INTO meta(id, key, value) VALUES(NULL, ?, ?)",
                ("project_settings", PROJECT_SETTINGS_XML),
            )

    def storage_version(self) -> int | None:
        """Version recorded in ``meta``, or None if the table or key is absent."""
        conn = self.get_connection()
        try:
            row = conn.execute(
                "SELECT value FROM meta WHERE key = 'storage_version' LIMIT 1"
            ).fetchone()
        except sqlite3.Error:
            return None
        if row is None:
            return None
        try:
            return int(row["value"])
        except ValueError:
            return None

    def clear(self) -> None:
        """Delete every indexed row, keeping the schema and meta."""
        with self.transaction() as tx:
            for table in _DATA_TABLES:
                tx.execute(f"DELETE FROM {table}")

    def counts(self) -> dict[str, int]:
        """Row counts for the main tables."""
        conn = self.get_connection()
        try:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in _COUNTED_TABLES
            }
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def close(self) -> None:
        """Roll back anything still open and close the connection."""
        if self._conn is None:
            return
        if self._depth:
            logger.warning("closing_with_open_transaction", depth=self._depth)
            self._depth = 1
            self.rollback()
        self._conn.close()
        self._conn = None
