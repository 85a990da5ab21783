"""Session: the client-facing facade over one index database."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from trailwriter.config import WriterSettings, load_settings
from trailwriter.core.builders import (
    ErrorBuilder,
    LocalSymbolBuilder,
    ReferenceBuilder,
    SpanLike,
    SymbolBuilder,
    UnsolvedReferenceBuilder,
    as_range,
)
from trailwriter.core.exceptions import DatabaseError
from trailwriter.core.ids import IdAllocator
from trailwriter.core.logging import get_logger
from trailwriter.core.models import EdgeKind, LocationKind, NodeKind
from trailwriter.core.storage import (
    PROJECT_EXTENSION,
    STORAGE_VERSION,
    Database,
    EdgeRecorder,
    LocationRecorder,
    SymbolRegistry,
    normalize_db_path,
)
from trailwriter.core.storage.database import PROJECT_SETTINGS_XML
from trailwriter.core.storage.files import read_source_file

logger = get_logger(__name__)


class Session:
    """Writes symbols, references, files and locations into one database.

    Obtain one with ``Session.create`` or ``Session.open``. Builder commits and
    direct ``record_*`` calls each run in their own transaction unless a
    ``batch`` is open, in which case they all land or vanish together.
    """

    def __init__(self, database: Database, settings: WriterSettings | None = None) -> None:
        self.database = database
        self.settings = settings or load_settings()
        self.allocator = IdAllocator.seeded(database.get_connection())
        database.on_begin(self.allocator.sync)

        get_connection = database.get_connection
        self.registry = SymbolRegistry(get_connection, self.allocator)
        self.edges = EdgeRecorder(get_connection, self.allocator)
        self.locations = LocationRecorder(get_connection, self.allocator)
        self._batch_open = False

    # ── Lifecycle ──

    @classmethod
    def create(
        cls,
        path: Path | str,
        *,
        overwrite: bool = False,
        settings: WriterSettings | None = None,
    ) -> Session:
        """Create a new database (and its project file) at ``path``."""
        settings = settings or load_settings()
        db_path = normalize_db_path(path)
        if db_path.exists():
            if not overwrite:
                raise DatabaseError(f"{db_path} already exists")
            try:
                db_path.unlink()
            except OSError as exc:
                raise DatabaseError(f"cannot replace {db_path}: {exc}") from exc

        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DatabaseError(f"cannot create {db_path.parent}: {exc}") from exc
        database = Database(
            db_path, busy_timeout=settings.busy_timeout, foreign_keys=settings.foreign_keys
        )
        try:
            database.create_schema()
            db_path.with_suffix(PROJECT_EXTENSION).write_text(PROJECT_SETTINGS_XML)
        except OSError as exc:
            database.close()
            raise DatabaseError(f"cannot write project file for {db_path}: {exc}") from exc
        except DatabaseError:
            database.close()
            raise

        logger.info("database_created", path=str(db_path), storage_version=STORAGE_VERSION)
        return cls(database, settings)

    @classmethod
    def open(
        cls,
        path: Path | str,
        *,
        clear: bool = False,
        settings: WriterSettings | None = None,
    ) -> Session:
        """Open an existing database. Nothing is written unless ``clear`` is set."""
        settings = settings or load_settings()
        db_path = normalize_db_path(path)
        if not db_path.exists():
            raise DatabaseError(f"{db_path} not found")

        database = Database(
            db_path, busy_timeout=settings.busy_timeout, foreign_keys=settings.foreign_keys
        )
        version = database.storage_version()
        if version != STORAGE_VERSION:
            database.close()
            raise DatabaseError(
                f"{db_path} has storage version {version}, expected {STORAGE_VERSION}"
            )
        if clear:
            database.clear()

        session = cls(database, settings)
        logger.info("database_opened", path=str(db_path), next_id=session.allocator.peek())
        return session

    @property
    def path(self) -> Path:
        return self.database.path

    def __enter__(self) -> Session:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        if exc_type is not None and self._batch_open:
            self.abort()
        self.close()

    @contextmanager
    def batch(self) -> Iterator[Session]:
        """Group many records into one transaction."""
        self.begin()
        try:
            yield self
        except BaseException:
            if self._batch_open:
                self.abort()
            raise
        if self._batch_open:
            self.commit_all()

    def begin(self) -> None:
        """Open a batch explicitly; finish it with ``commit_all`` or ``abort``."""
        if self._batch_open:
            raise DatabaseError("a batch is already open")
        self.database.begin()
        self._batch_open = True

    def abort(self) -> None:
        """Discard everything written since the batch was opened."""
        if not self._batch_open:
            return
        self._batch_open = False
        lost = self.database.aborted
        if self.database.in_transaction:
            self.database.rollback()
        logger.info("batch_aborted", path=str(self.path), rolled_back_by_sqlite=lost)

    def commit_all(self) -> None:
        """Commit an open batch, if any, making all records durable."""
        if not self._batch_open:
            return
        self._batch_open = False
        self.database.commit()
        logger.info("batch_committed", path=str(self.path))

    def close(self) -> None:
        """Commit an open batch and close the database."""
        if self._batch_open:
            self.commit_all()
        self.database.close()
        logger.info("database_closed", path=str(self.path))

    def clear(self) -> None:
        """Delete every indexed row."""
        self.database.clear()

    def stats(self) -> dict[str, int]:
        """Row counts for nodes, edges, files, local symbols, locations and errors."""
        return self.database.counts()

    # ── Symbol builders ──

    def record_symbol(self, kind: NodeKind | int = NodeKind.UNKNOWN) -> SymbolBuilder:
        return SymbolBuilder(self, kind)

    def record_type(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.TYPE)

    def record_builtin_type(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.BUILTIN_TYPE)

    def record_module(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.MODULE)

    def record_namespace(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.NAMESPACE)

    def record_package(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.PACKAGE)

    def record_struct(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.STRUCT)

    def record_class(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.CLASS)

    def record_interface(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.INTERFACE)

    def record_annotation(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.ANNOTATION)

    def record_global_variable(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.GLOBAL_VARIABLE)

    def record_field(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.FIELD)

    def record_function(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.FUNCTION)

    def record_method(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.METHOD)

    def record_enum(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.ENUM)

    def record_enum_constant(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.ENUM_CONSTANT)

    def record_typedef(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.TYPEDEF)

    def record_type_parameter(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.TYPE_PARAMETER)

    def record_macro(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.MACRO)

    def record_union(self) -> SymbolBuilder:
        return self.record_symbol(NodeKind.UNION)

    def record_local_symbol(self) -> LocalSymbolBuilder:
        return LocalSymbolBuilder(self)

    # ── References ──

    def record_reference(self, kind: EdgeKind) -> ReferenceBuilder:
        return ReferenceBuilder(self, kind)

    def record_reference_to_unsolved_symbol(self) -> UnsolvedReferenceBuilder:
        return UnsolvedReferenceBuilder(self)

    def record_ref(self, kind: EdgeKind, source_id: int, target_id: int) -> int:
        """Record (or find) an edge between two existing nodes."""
        with self.database.transaction():
            return self.edges.record(kind, source_id, target_id)

    def record_ref_member(self, parent_id: int, child_id: int) -> int:
        return self.record_ref(EdgeKind.MEMBER, parent_id, child_id)

    def record_ref_type_usage(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.TYPE_USAGE, source_id, target_id)

    def record_ref_usage(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.USAGE, source_id, target_id)

    def record_ref_call(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.CALL, source_id, target_id)

    def record_ref_inheritance(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.INHERITANCE, source_id, target_id)

    def record_ref_override(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.OVERRIDE, source_id, target_id)

    def record_ref_type_argument(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.TYPE_ARGUMENT, source_id, target_id)

    def record_ref_template_specialization(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.TEMPLATE_SPECIALIZATION, source_id, target_id)

    def record_ref_include(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.INCLUDE, source_id, target_id)

    def record_ref_import(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.IMPORT, source_id, target_id)

    def record_ref_macro_usage(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.MACRO_USAGE, source_id, target_id)

    def record_ref_annotation_usage(self, source_id: int, target_id: int) -> int:
        return self.record_ref(EdgeKind.ANNOTATION_USAGE, source_id, target_id)

    def record_reference_is_ambiguous(self, edge_id: int) -> None:
        with self.database.transaction():
            self.edges.mark_ambiguous(edge_id)

    # ── Files ──

    def record_file(
        self,
        path: Path | str,
        *,
        language: str | None = None,
        content: str | None = None,
        modification_time: datetime | None = None,
        indexed: bool | None = None,
        complete: bool | None = None,
    ) -> int:
        """Get or create the file at ``path``, merging any supplied attributes."""
        with self.database.transaction():
            return self.registry.get_or_create_file(
                str(path),
                language=language,
                content=content,
                modification_time=modification_time,
                indexed=indexed,
                complete=complete,
            )

    def record_file_from_disk(self, path: Path | str, *, language: str | None = None) -> int:
        """Record a file using its current content and modification time."""
        path = Path(path)
        try:
            content, modified = read_source_file(path)
        except OSError as exc:
            raise DatabaseError(f"cannot read {path}: {exc}") from exc
        return self.record_file(
            path, language=language, content=content, modification_time=modified, indexed=True
        )

    def record_file_language(self, file_id: int, language: str) -> None:
        with self.database.transaction():
            self.registry.files.set_language(file_id, language)

    # ── Source locations ──

    def record_source_location(
        self,
        element_id: int,
        file_id: int,
        span: SpanLike,
        kind: LocationKind = LocationKind.TOKEN,
    ) -> int:
        """Attach a source range to a node, edge or local symbol."""
        span = as_range(span).validate()
        with self.database.transaction():
            return self.locations.record(file_id, element_id, span, kind)

    def record_symbol_location(self, element_id: int, file_id: int, span: SpanLike) -> int:
        return self.record_source_location(element_id, file_id, span, LocationKind.TOKEN)

    def record_symbol_scope_location(self, element_id: int, file_id: int, span: SpanLike) -> int:
        return self.record_source_location(element_id, file_id, span, LocationKind.SCOPE)

    def record_symbol_signature_location(
        self, element_id: int, file_id: int, span: SpanLike
    ) -> int:
        return self.record_source_location(element_id, file_id, span, LocationKind.SIGNATURE)

    def record_reference_location(self, edge_id: int, file_id: int, span: SpanLike) -> int:
        return self.record_source_location(edge_id, file_id, span, LocationKind.TOKEN)

    def record_qualifier_location(self, element_id: int, file_id: int, span: SpanLike) -> int:
        return self.record_source_location(element_id, file_id, span, LocationKind.QUALIFIER)

    def record_local_symbol_location(self, local_id: int, file_id: int, span: SpanLike) -> int:
        return self.record_source_location(local_id, file_id, span, LocationKind.LOCAL_SYMBOL)

    def record_atomic_source_range(self, element_id: int, file_id: int, span: SpanLike) -> int:
        return self.record_source_location(element_id, file_id, span, LocationKind.ATOMIC_RANGE)

    # ── Errors ──

    def record_error(self) -> ErrorBuilder:
        return ErrorBuilder(self)

    def describe(self) -> dict[str, Any]:
        """Path, storage version and row counts, for reporting."""
        return {
            "path": str(self.path),
            "storage_version": self.database.storage_version(),
            **self.stats(),
        }
