"""Staged record builders.

Each builder moves through EMPTY -> CONFIGURING -> VALIDATED -> COMMITTED.
Setters return the builder so calls can be chained::

    class_id = session.record_class().name("Order").location(file_id, span).commit()

``commit`` checks required fields and source ranges before touching storage,
then performs every write for the record in a single transaction.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, TypeVar

from trailwriter.core.exceptions import (
    AlreadyCommittedError,
    InvalidRangeError,
    MissingRequiredFieldError,
)
from trailwriter.core.logging import get_logger
from trailwriter.core.models import (
    DefinitionKind,
    EdgeKind,
    LocationKind,
    NameElement,
    NameHierarchy,
    NodeKind,
    SourceRange,
)
from trailwriter.core.names import DELIMITER_UNKNOWN, decode_name
from trailwriter.core.storage.edges import coerce_edge_kind
from trailwriter.core.storage.locations import coerce_location_kind
from trailwriter.core.storage.symbols import coerce_node_kind

if TYPE_CHECKING:
    from trailwriter.core.session import Session

logger = get_logger(__name__)

UNSOLVED_SYMBOL_NAME = "unsolved symbol"

SpanLike = SourceRange | tuple[int, int, int, int]
B = TypeVar("B", bound="RecordBuilder")


class BuilderState(Enum):
    EMPTY = "empty"
    CONFIGURING = "configuring"
    VALIDATED = "validated"
    COMMITTED = "committed"


def as_range(span: SpanLike) -> SourceRange:
    """Accept a SourceRange or a (start_line, start_column, end_line, end_column) tuple."""
    if isinstance(span, SourceRange):
        values: tuple = (span.start_line, span.start_column, span.end_line, span.end_column)
    else:
        try:
            values = tuple(span)
        except TypeError:
            raise InvalidRangeError(f"{span!r} is not a source range") from None
    if len(values) != 4 or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in values
    ):
        raise InvalidRangeError(f"{span!r} is not four integer positions")
    return span if isinstance(span, SourceRange) else SourceRange(*values)


class RecordBuilder(ABC):
    """Base class holding the state machine and staged locations."""

    record_name = "record"

    def __init__(self, session: Session) -> None:
        self._session = session
        self._state = BuilderState.EMPTY
        self._id: int | None = None
        self._locations: list[tuple[int, SourceRange, LocationKind]] = []

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def id(self) -> int | None:
        """Id returned by a successful commit, else None."""
        return self._id

    def _configure(self) -> None:
        if self._state is BuilderState.COMMITTED:
            raise AlreadyCommittedError(
                f"{self.record_name} record {self._id} was already committed"
            )
        self._state = BuilderState.CONFIGURING

    def _stage_location(self: B, file_id: int, span: SpanLike, kind: LocationKind) -> B:
        self._configure()
        self._locations.append((file_id, as_range(span), coerce_location_kind(kind)))
        return self

    @abstractmethod
    def _missing_fields(self) -> list[str]:
        """Names of required attributes that have not been set."""

    def _spans(self) -> list[SourceRange]:
        return [span for _file_id, span, _kind in self._locations]

    @abstractmethod
    def _write(self) -> int:
        """Perform the record's writes; runs inside an open transaction."""

    def commit(self) -> int:
        """Validate, write atomically and return the record's id."""
        if self._state is BuilderState.COMMITTED:
            raise AlreadyCommittedError(
                f"{self.record_name} record {self._id} was already committed"
            )
        missing = self._missing_fields()
        if missing:
            raise MissingRequiredFieldError(self.record_name, missing)
        for span in self._spans():
            span.validate()
        self._state = BuilderState.VALIDATED

        try:
            with self._session.database.transaction():
                record_id = self._write()
        except BaseException:
            self._state = BuilderState.CONFIGURING
            raise

        self._id = record_id
        self._state = BuilderState.COMMITTED
        return record_id

    def _write_locations(self, element_id: int) -> None:
        for file_id, span, kind in self._locations:
            self._session.locations.record(file_id, element_id, span, kind)


class SymbolBuilder(RecordBuilder):
    """Builds a node such as a class, method or field."""

    record_name = "symbol"

    def __init__(self, session: Session, kind: NodeKind | int) -> None:
        super().__init__(session)
        self.kind = coerce_node_kind(kind)
        self.record_name = self.kind.name.lower()
        self._name: str | None = None
        self._prefix = ""
        self._postfix = ""
        self._delimiter: str | None = None
        self._parent: int | None = None
        self._indexed = True

    def name(self, name: str) -> SymbolBuilder:
        self._configure()
        self._name = name
        return self

    def prefix(self, prefix: str) -> SymbolBuilder:
        """Text shown before the name, e.g. a return type."""
        self._configure()
        self._prefix = prefix
        return self

    def postfix(self, postfix: str) -> SymbolBuilder:
        """Text shown after the name, e.g. a parameter list."""
        self._configure()
        self._postfix = postfix
        return self

    def delimiter(self, delimiter: str) -> SymbolBuilder:
        """Delimiter of a top-level name; children inherit their parent's."""
        self._configure()
        self._delimiter = delimiter
        return self

    def parent(self, parent_id: int | None) -> SymbolBuilder:
        self._configure()
        self._parent = parent_id
        return self

    def indexed(self, indexed: bool = True) -> SymbolBuilder:
        """Whether the definition itself was seen (False for external symbols)."""
        self._configure()
        self._indexed = indexed
        return self

    def location(
        self, file_id: int, span: SpanLike, kind: LocationKind = LocationKind.TOKEN
    ) -> SymbolBuilder:
        return self._stage_location(file_id, span, kind)

    def scope_location(self, file_id: int, span: SpanLike) -> SymbolBuilder:
        return self._stage_location(file_id, span, LocationKind.SCOPE)

    def signature_location(self, file_id: int, span: SpanLike) -> SymbolBuilder:
        return self._stage_location(file_id, span, LocationKind.SIGNATURE)

    def qualifier_location(self, file_id: int, span: SpanLike) -> SymbolBuilder:
        return self._stage_location(file_id, span, LocationKind.QUALIFIER)

    def _missing_fields(self) -> list[str]:
        return [] if self._name else ["name"]

    def _write(self) -> int:
        registry = self._session.registry
        element = NameElement(name=self._name or "", prefix=self._prefix, postfix=self._postfix)
        if self._parent is not None:
            parent = registry.get_node(self._parent)
            hierarchy = decode_name(parent.serialized_name).append(element)
        else:
            delimiter = self._delimiter or self._session.settings.default_delimiter
            hierarchy = NameHierarchy(delimiter, (element,))

        node_id = registry.get_or_create_node(self.kind, hierarchy)
        if self._indexed:
            registry.set_definition_kind(node_id, DefinitionKind.EXPLICIT)
        if self._parent is not None:
            self._session.edges.record(EdgeKind.MEMBER, self._parent, node_id)
        self._write_locations(node_id)
        logger.debug(
            "symbol_committed", id=node_id, kind=self.kind.name, name=hierarchy.qualified_name
        )
        return node_id


class LocalSymbolBuilder(RecordBuilder):
    """Builds a local symbol, deduplicated only within its scope key."""

    record_name = "local symbol"

    def __init__(self, session: Session) -> None:
        super().__init__(session)
        self._name: str | None = None
        self._scope: str | None = None

    def name(self, name: str) -> LocalSymbolBuilder:
        self._configure()
        self._name = name
        return self

    def scope(self, scope: str | None) -> LocalSymbolBuilder:
        """Key of the enclosing context, e.g. a function's serialized name."""
        self._configure()
        self._scope = scope
        return self

    def location(self, file_id: int, span: SpanLike) -> LocalSymbolBuilder:
        return self._stage_location(file_id, span, LocationKind.LOCAL_SYMBOL)

    def _missing_fields(self) -> list[str]:
        return [] if self._name else ["name"]

    def _write(self) -> int:
        local_id = self._session.registry.get_or_create_local_symbol(self._name or "", self._scope)
        self._write_locations(local_id)
        return local_id


class ReferenceBuilder(RecordBuilder):
    """Builds an edge between two recorded nodes, with optional locations."""

    record_name = "reference"

    def __init__(self, session: Session, kind: EdgeKind) -> None:
        super().__init__(session)
        self.kind = coerce_edge_kind(kind)
        self._source: int | None = None
        self._target: int | None = None
        self._ambiguous = False

    def source(self, node_id: int) -> ReferenceBuilder:
        self._configure()
        self._source = node_id
        return self

    def target(self, node_id: int) -> ReferenceBuilder:
        self._configure()
        self._target = node_id
        return self

    def ambiguous(self, ambiguous: bool = True) -> ReferenceBuilder:
        self._configure()
        self._ambiguous = ambiguous
        return self

    def location(
        self, file_id: int, span: SpanLike, kind: LocationKind = LocationKind.TOKEN
    ) -> ReferenceBuilder:
        return self._stage_location(file_id, span, kind)

    def _missing_fields(self) -> list[str]:
        missing = []
        if self._source is None:
            missing.append("source")
        if self._target is None:
            missing.append("target")
        return missing

    def _write(self) -> int:
        assert self._source is not None and self._target is not None
        edge_id = self._session.edges.record(self.kind, self._source, self._target)
        if self._ambiguous:
            self._session.edges.mark_ambiguous(edge_id)
        self._write_locations(edge_id)
        return edge_id


class UnsolvedReferenceBuilder(RecordBuilder):
    """Builds a reference whose target could not be resolved by the indexer."""

    record_name = "unsolved reference"

    def __init__(self, session: Session) -> None:
        super().__init__(session)
        self._source: int | None = None
        self._kind: EdgeKind | None = None

    def source(self, node_id: int) -> UnsolvedReferenceBuilder:
        self._configure()
        self._source = node_id
        return self

    def reference_kind(self, kind: EdgeKind) -> UnsolvedReferenceBuilder:
        self._configure()
        self._kind = coerce_edge_kind(kind)
        return self

    def location(self, file_id: int, span: SpanLike) -> UnsolvedReferenceBuilder:
        return self._stage_location(file_id, span, LocationKind.UNSOLVED)

    def _missing_fields(self) -> list[str]:
        missing = []
        if self._source is None:
            missing.append("source")
        if self._kind is None:
            missing.append("reference_kind")
        if not self._locations:
            missing.append("location")
        return missing

    def _write(self) -> int:
        assert self._source is not None and self._kind is not None
        unsolved = NameHierarchy(DELIMITER_UNKNOWN, (NameElement(name=UNSOLVED_SYMBOL_NAME),))
        target_id = self._session.registry.get_or_create_node(NodeKind.UNKNOWN, unsolved)
        edge_id = self._session.edges.record(self._kind, self._source, target_id)
        self._write_locations(edge_id)
        return edge_id


class ErrorBuilder(RecordBuilder):
    """Builds an indexer error attached to a source range."""

    record_name = "error"

    def __init__(self, session: Session) -> None:
        super().__init__(session)
        self._message = ""
        self._fatal = False
        self._translation_unit = ""
        self._file: int | None = None
        self._span: SourceRange | None = None

    def message(self, message: str) -> ErrorBuilder:
        self._configure()
        self._message = message
        return self

    def fatal(self, fatal: bool = True) -> ErrorBuilder:
        self._configure()
        self._fatal = fatal
        return self

    def translation_unit(self, name: str) -> ErrorBuilder:
        self._configure()
        self._translation_unit = name
        return self

    def location(self, file_id: int, span: SpanLike) -> ErrorBuilder:
        self._configure()
        self._file = file_id
        self._span = as_range(span)
        return self

    def _missing_fields(self) -> list[str]:
        missing = []
        if not self._message:
            missing.append("message")
        if self._file is None or self._span is None:
            missing.append("location")
        return missing

    def _spans(self) -> list[SourceRange]:
        return [] if self._span is None else [self._span]

    def _write(self) -> int:
        assert self._file is not None and self._span is not None
        return self._session.locations.record_error(
            self._message,
            self._file,
            self._span,
            fatal=self._fatal,
            translation_unit=self._translation_unit,
        )
