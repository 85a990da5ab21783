"""File storage operations."""

from __future__ import annotations

import os
import sqlite3
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from trailwriter.core.exceptions import DanglingReferenceError
from trailwriter.core.models import MODIFICATION_TIME_FORMAT, FileRecord


def normalize_path(path: Path | str) -> str:
    """Absolute, user-expanded, normalized form used as a file's identity."""
    return os.path.normpath(os.path.abspath(os.path.expanduser(str(path))))


def count_lines(content: str) -> int:
    return len(content.splitlines())


def format_time(value: datetime) -> str:
    return value.strftime(MODIFICATION_TIME_FORMAT)


class FileStorage:
    """Row-level operations on the ``file`` and ``filecontent`` tables."""

    def __init__(self, get_connection: Callable[[], sqlite3.Connection]) -> None:
        self._get_connection = get_connection

    def find_id(self, path: str) -> int | None:
        """Id of the file stored under an already normalized path."""
        conn = self._get_connection()
        row = conn.execute("SELECT id FROM file WHERE path = ? LIMIT 1", (path,)).fetchone()
        return None if row is None else row["id"]

    def exists(self, file_id: int) -> bool:
        conn = self._get_connection()
        return conn.execute("SELECT 1 FROM file WHERE id = ?", (file_id,)).fetchone() is not None

    def get(self, file_id: int) -> FileRecord:
        """Get a file by id."""
        conn = self._get_connection()
        row = conn.execute("SELECT * FROM file WHERE id = ?", (file_id,)).fetchone()
        if row is None:
            raise DanglingReferenceError(f"file with id {file_id} does not exist")
        return FileRecord.from_row(row)

    def get_content(self, file_id: int) -> str | None:
        conn = self._get_connection()
        row = conn.execute("SELECT content FROM filecontent WHERE id = ?", (file_id,)).fetchone()
        return None if row is None else row["content"]

    def insert(
        self,
        file_id: int,
        path: str,
        *,
        language: str,
        modification_time: datetime,
        indexed: bool,
        complete: bool,
        content: str,
    ) -> None:
        """Insert the file row (and its content when indexed) for an existing node."""
        conn = self._get_connection()
        conn.execute(
            """
            INSERT INTO file(id, path, language, modification_time, indexed, complete, line_count)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                file_id,
                path,
                language,
                format_time(modification_time),
                indexed,
                complete,
                count_lines(content) if indexed else 0,
            ),
        )
        if indexed:
            conn.execute(
                "INSERT INTO filecontent(id, content) VALUES (?, ?)", (file_id, content)
            )

    def merge(
        self,
        file_id: int,
        *,
        language: str | None = None,
        content: str | None = None,
        modification_time: datetime | None = None,
        indexed: bool | None = None,
        complete: bool | None = None,
    ) -> bool:
        """Apply newly supplied attributes; empty values never erase stored ones.

        Content is only kept for files that end up indexed, as on insert.
        Returns True if any column changed.
        """
        conn = self._get_connection()
        row = conn.execute("SELECT indexed FROM file WHERE id = ?", (file_id,)).fetchone()
        if row is None:
            raise DanglingReferenceError(f"file with id {file_id} does not exist")
        ends_indexed = bool(row["indexed"]) if indexed is None else indexed
        keep_content = bool(content) and ends_indexed

        assignments: list[str] = []
        params: list[object] = []
        if language:
            assignments.append("language = ?")
            params.append(language)
        if modification_time is not None:
            assignments.append("modification_time = ?")
            params.append(format_time(modification_time))
        if indexed is not None:
            assignments.append("indexed = ?")
            params.append(indexed)
        if complete is not None:
            assignments.append("complete = ?")
            params.append(complete)
        if keep_content:
            assignments.append("line_count = ?")
            params.append(count_lines(content))

        if assignments:
            conn.execute(
                f"UPDATE file SET {', '.join(assignments)} WHERE id = ?", (*params, file_id)
            )
        if keep_content:
            conn.execute(
                """
                INSERT INTO filecontent(id, content) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET content = excluded.content
                """,
                (file_id, content),
            )
        return bool(assignments)

    def set_language(self, file_id: int, language: str) -> None:
        if not self.exists(file_id):
            raise DanglingReferenceError(f"file with id {file_id} does not exist")
        conn = self._get_connection()
        conn.execute("UPDATE file SET language = ? WHERE id = ?", (language, file_id))


def read_source_file(path: Path) -> tuple[str, datetime]:
    """Read a file's text and modification time from disk."""
    content = path.read_text(encoding="utf-8", errors="replace")
    modified = datetime.fromtimestamp(path.stat().st_mtime)
    return content, modified
