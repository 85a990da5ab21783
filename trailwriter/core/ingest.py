"""Records a directory of source files into a session."""

from __future__ import annotations

import fnmatch
from collections.abc import Callable
from pathlib import Path

from trailwriter.core.exceptions import DatabaseError
from trailwriter.core.logging import get_logger
from trailwriter.core.models import IngestStats
from trailwriter.core.session import Session

logger = get_logger(__name__)

ProgressCallback = Callable[[Path, int, int], None]

DEFAULT_EXCLUDES = [
    "__pycache__",
    "*.egg-info",
    "node_modules",
    "build",
    "dist",
    "venv",
    ".venv",
    ".git",
]

# Used when no explicit language is given.
LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".c": "c",
    ".h": "c",
    ".cc": "cpp",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".java": "java",
    ".rs": "rust",
    ".go": "go",
    ".js": "javascript",
    ".ts": "typescript",
}


class FileIngester:
    """Walks a directory and records every matching file with its content."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def ingest_directory(
        self,
        directory: Path,
        pattern: str = "*.py",
        exclude_patterns: list[str] | None = None,
        language: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IngestStats:
        """Record all files under ``directory`` matching ``pattern``.

        All files are written in one batch: a storage failure discards the
        whole run. Unreadable files are counted as errors and skipped.
        """
        all_excludes = DEFAULT_EXCLUDES + (exclude_patterns or [])
        stats = IngestStats()

        files = sorted(p for p in directory.rglob(pattern) if p.is_file())
        total = len(files)

        with self._session.batch():
            for i, file in enumerate(files):
                relative_path = str(file.relative_to(directory))
                if self._should_exclude(relative_path, all_excludes):
                    stats.skipped += 1
                elif self._ingest_file(file, language, stats):
                    stats.files += 1
                if on_progress:
                    on_progress(file, i + 1, total)

        logger.info("directory_ingested", directory=str(directory), stats=repr(stats))
        return stats

    def _ingest_file(self, file: Path, language: str | None, stats: IngestStats) -> bool:
        try:
            self._session.record_file_from_disk(
                file, language=language or LANGUAGE_BY_SUFFIX.get(file.suffix.lower(), "")
            )
        except DatabaseError as e:
            if not isinstance(e.__cause__, OSError):
                raise
            stats.errors.append(str(e))
            return False
        return True

    def _should_exclude(self, path: str, patterns: list[str]) -> bool:
        """Check if a path matches any exclude pattern."""
        parts = Path(path).parts
        for pattern in patterns:
            if fnmatch.fnmatch(path, pattern):
                return True
            if any(fnmatch.fnmatch(part, pattern) for part in parts):
                return True
        return False
