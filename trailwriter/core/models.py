"""Data models for trailwriter."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from pathlib import Path

from trailwriter.core.exceptions import InvalidNameError, InvalidRangeError

MODIFICATION_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class NodeKind(IntEnum):
    """Kinds of nodes understood by the index consumer."""

    SYMBOL = 1 << 0
    TYPE = 1 << 1
    BUILTIN_TYPE = 1 << 2
    MODULE = 1 << 3
    NAMESPACE = 1 << 4
    PACKAGE = 1 << 5
    STRUCT = 1 << 6
    CLASS = 1 << 7
    INTERFACE = 1 << 8
    ANNOTATION = 1 << 9
    GLOBAL_VARIABLE = 1 << 10
    FIELD = 1 << 11
    FUNCTION = 1 << 12
    METHOD = 1 << 13
    ENUM = 1 << 14
    ENUM_CONSTANT = 1 << 15
    TYPEDEF = 1 << 16
    TYPE_PARAMETER = 1 << 17
    FILE = 1 << 18
    MACRO = 1 << 19
    UNION = 1 << 20

    # A symbol whose kind is not known yet.
    UNKNOWN = SYMBOL


class EdgeKind(IntEnum):
    """Kinds of relationships between two nodes."""

    MEMBER = 1 << 0
    TYPE_USAGE = 1 << 1
    USAGE = 1 << 2
    CALL = 1 << 3
    INHERITANCE = 1 << 4
    OVERRIDE = 1 << 5
    TYPE_ARGUMENT = 1 << 6
    TEMPLATE_SPECIALIZATION = 1 << 7
    INCLUDE = 1 << 8
    IMPORT = 1 << 9
    MACRO_USAGE = 1 << 11
    ANNOTATION_USAGE = 1 << 12


class LocationKind(IntEnum):
    """Role of a source range attributed to an element."""

    TOKEN = 0
    SCOPE = 1
    QUALIFIER = 2
    LOCAL_SYMBOL = 3
    SIGNATURE = 4
    ATOMIC_RANGE = 5
    INDEXER_ERROR = 6
    FULLTEXT_SEARCH = 7
    SCREEN_SEARCH = 8
    UNSOLVED = 9


class DefinitionKind(IntEnum):
    """How a symbol's definition was observed."""

    NONE = 0
    IMPLICIT = 1
    EXPLICIT = 2


class ComponentKind(IntEnum):
    """Extra flags attached to an element."""

    NONE = 0
    IS_AMBIGUOUS = 1


@dataclass(frozen=True)
class NameElement:
    """One segment of a qualified name, e.g. ``void`` ``foo`` ``(int)``."""

    name: str = ""
    prefix: str = ""
    postfix: str = ""


@dataclass(frozen=True)
class NameHierarchy:
    """An ordered, non-empty chain of name elements joined by a delimiter."""

    delimiter: str
    elements: tuple[NameElement, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        object.__setattr__(self, "elements", tuple(self.elements))
        if not self.elements:
            raise InvalidNameError("name hierarchy must contain at least one element")

    @classmethod
    def of(cls, delimiter: str, *names: str) -> NameHierarchy:
        """Build a hierarchy from bare names."""
        return cls(delimiter, tuple(NameElement(name=n) for n in names))

    def __len__(self) -> int:
        return len(self.elements)

    def append(self, element: NameElement) -> NameHierarchy:
        """Return a new hierarchy with ``element`` added as the innermost segment."""
        return NameHierarchy(self.delimiter, self.elements + (element,))

    def extend(self, elements: Iterable[NameElement]) -> NameHierarchy:
        return NameHierarchy(self.delimiter, self.elements + tuple(elements))

    def parent(self) -> NameHierarchy | None:
        """Hierarchy of the enclosing symbol, or None for a top-level name."""
        if len(self.elements) == 1:
            return None
        return NameHierarchy(self.delimiter, self.elements[:-1])

    @property
    def leaf(self) -> NameElement:
        return self.elements[-1]

    @property
    def qualified_name(self) -> str:
        """Human readable name, e.g. ``pkg::Outer::inner``."""
        return self.delimiter.join(e.name for e in self.elements)


@dataclass(frozen=True)
class SourceRange:
    """A 1-based, inclusive span of source text."""

    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def is_valid(self) -> bool:
        if min(self.start_line, self.start_column, self.end_line, self.end_column) < 1:
            return False
        return (self.start_line, self.start_column) <= (self.end_line, self.end_column)

    def validate(self) -> SourceRange:
        """Return self, or raise InvalidRangeError if the span is malformed."""
        if not self.is_valid:
            raise InvalidRangeError(
                f"invalid source range {self.start_line}:{self.start_column}"
                f"-{self.end_line}:{self.end_column}"
            )
        return self


@dataclass
class Node:
    """A persisted symbol or file node."""

    id: int
    kind: NodeKind
    serialized_name: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Node:
        """Create a Node from a database row."""
        return cls(id=row["id"], kind=NodeKind(row["type"]), serialized_name=row["serialized_name"])


@dataclass
class Edge:
    """A typed relationship between two nodes."""

    id: int
    kind: EdgeKind
    source_id: int
    target_id: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Edge:
        """Create an Edge from a database row."""
        return cls(
            id=row["id"],
            kind=EdgeKind(row["type"]),
            source_id=row["source_node_id"],
            target_id=row["target_node_id"],
        )


@dataclass
class FileRecord:
    """A source file known to the index."""

    id: int
    path: Path
    language: str
    modification_time: datetime | None
    indexed: bool
    complete: bool
    line_count: int

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> FileRecord:
        """Create a FileRecord from a database row."""
        raw_time = row["modification_time"]
        return cls(
            id=row["id"],
            path=Path(row["path"]),
            language=row["language"] or "",
            modification_time=(
                datetime.strptime(raw_time, MODIFICATION_TIME_FORMAT) if raw_time else None
            ),
            indexed=bool(row["indexed"]),
            complete=bool(row["complete"]),
            line_count=row["line_count"] or 0,
        )


@dataclass
class SourceLocation:
    """A source range inside a file."""

    id: int
    file_id: int
    range: SourceRange
    kind: LocationKind

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SourceLocation:
        """Create a SourceLocation from a database row."""
        return cls(
            id=row["id"],
            file_id=row["file_node_id"],
            range=SourceRange(
                row["start_line"], row["start_column"], row["end_line"], row["end_column"]
            ),
            kind=LocationKind(row["type"]),
        )


@dataclass
class LocalSymbol:
    """A symbol scoped to a narrow context such as a function body."""

    id: int
    name: str

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> LocalSymbol:
        return cls(id=row["id"], name=row["name"])


class IngestStats:
    """Statistics from recording a directory of source files."""

    def __init__(self) -> None:
        self.files: int = 0
        self.skipped: int = 0
        self.errors: list[str] = []

    def __repr__(self) -> str:
        return f"IngestStats(files={self.files}, skipped={self.skipped}, errors={len(self.errors)})"
