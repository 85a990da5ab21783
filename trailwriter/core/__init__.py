"""
Core module: models, name codec, builders, session and storage.

Models (models.py):
    - NameElement / NameHierarchy: qualified names with prefix and postfix
    - NodeKind / EdgeKind / LocationKind: the consumer's enumerations
    - SourceRange: 1-based inclusive source span

Names (names.py):
    - encode_name / decode_name: the consumer's serialized name format

Exceptions (exceptions.py):
    - TrailWriterError: Base exception for all trailwriter errors
    - InvalidNameError, InvalidSymbolKindError, InvalidEdgeKindError,
      InvalidLocationKindError, DanglingReferenceError,
      InvalidRangeError, MissingRequiredFieldError, AlreadyCommittedError,
      DatabaseError

Session (session.py):
    - Session: create/open a database and record into it through builders

Storage (storage/):
    - SQLite persistence in the consumer's storage version 25 schema
"""

from trailwriter.core.builders import (
    BuilderState,
    ErrorBuilder,
    LocalSymbolBuilder,
    RecordBuilder,
    ReferenceBuilder,
    SymbolBuilder,
    UnsolvedReferenceBuilder,
)
from trailwriter.core.exceptions import (
    AlreadyCommittedError,
    DanglingReferenceError,
    DatabaseError,
    InvalidEdgeKindError,
    InvalidLocationKindError,
    InvalidNameError,
    InvalidRangeError,
    InvalidSymbolKindError,
    MissingRequiredFieldError,
    TrailWriterError,
)
from trailwriter.core.ids import IdAllocator
from trailwriter.core.models import (
    DefinitionKind,
    EdgeKind,
    LocationKind,
    NameElement,
    NameHierarchy,
    NodeKind,
    SourceRange,
)
from trailwriter.core.names import decode_name, encode_name
from trailwriter.core.session import Session

__all__ = [
    # Models
    "NameElement",
    "NameHierarchy",
    "NodeKind",
    "EdgeKind",
    "LocationKind",
    "DefinitionKind",
    "SourceRange",
    # Names
    "encode_name",
    "decode_name",
    # Exceptions
    "TrailWriterError",
    "InvalidNameError",
    "InvalidSymbolKindError",
    "InvalidEdgeKindError",
    "InvalidLocationKindError",
    "DanglingReferenceError",
    "InvalidRangeError",
    "MissingRequiredFieldError",
    "AlreadyCommittedError",
    "DatabaseError",
    # Recording
    "IdAllocator",
    "Session",
    "BuilderState",
    "RecordBuilder",
    "SymbolBuilder",
    "LocalSymbolBuilder",
    "ReferenceBuilder",
    "UnsolvedReferenceBuilder",
    "ErrorBuilder",
]
