"""
Storage layer: SQLite persistence in the index consumer's schema.

This module provides database operations split by concern:

Components:
    - Database: connection, schema creation, nested transactions
    - SymbolRegistry: get-or-create for nodes, local symbols and files
    - FileStorage: row-level file and file content operations
    - EdgeRecorder: deduplicated typed edges between existing nodes
    - LocationRecorder: source locations, occurrences and indexer errors

Database Schema (storage version 25):
    element, node, symbol, edge, file, filecontent, local_symbol,
    source_location, occurrence, element_component, component_access,
    error, meta
"""

from trailwriter.core.storage.database import (
    DB_EXTENSION,
    PROJECT_EXTENSION,
    STORAGE_VERSION,
    Database,
    normalize_db_path,
)
from trailwriter.core.storage.edges import EdgeRecorder
from trailwriter.core.storage.files import FileStorage, normalize_path
from trailwriter.core.storage.locations import LocationRecorder
from trailwriter.core.storage.symbols import SymbolRegistry

__all__ = [
    "Database",
    "SymbolRegistry",
    "FileStorage",
    "EdgeRecorder",
    "LocationRecorder",
    "normalize_db_path",
    "normalize_path",
    "DB_EXTENSION",
    "PROJECT_EXTENSION",
    "STORAGE_VERSION",
]
