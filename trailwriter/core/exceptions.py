"""Trailwriter custom exceptions."""

from __future__ import annotations

from collections.abc import Iterable


class TrailWriterError(Exception):
    """Base exception for trailwriter errors."""


class InvalidNameError(TrailWriterError):
    """Name hierarchy is empty or its serialized form is malformed."""


class InvalidSymbolKindError(TrailWriterError):
    """Node kind is not part of the storage schema."""


class InvalidEdgeKindError(TrailWriterError):
    """Edge kind is not part of the storage schema."""


class InvalidLocationKindError(TrailWriterError):
    """Source location kind is not part of the storage schema."""


class DanglingReferenceError(TrailWriterError):
    """A record references a node, element or file id that does not exist."""


class InvalidRangeError(TrailWriterError):
    """Source range is not well-ordered or has non-positive positions."""


class MissingRequiredFieldError(TrailWriterError):
    """Builder was committed without one or more mandatory attributes."""

    def __init__(self, record: str, fields: Iterable[str]) -> None:
        self.record = record
        self.fields = tuple(fields)
        super().__init__(f"{record} record is missing required field(s): {', '.join(self.fields)}")


class AlreadyCommittedError(TrailWriterError):
    """Builder was reused after a successful commit."""


class DatabaseError(TrailWriterError):
    """Storage could not be opened, or a transaction failed."""
