"""File storage operations."""

from __future__ import annotations

import hashlib
import sqlite3
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from codemeter.core.models import FileRecord


class FileStorage:
    """Storage operations for indexed files."""

    def __init__(
        self, get_connection: Callable[[], sqlite3.Connection], lock: threading.RLock
    ) -> None:
        self._get_connection = get_connection
        self._lock = lock

    def upsert(self, file: Path, content_hash: str) -> None:
        """Insert or update a file record."""
        with self._lock:
            conn = self._get_connection()
            conn.execute(
                """
                INSERT INTO files (path, hash, indexed_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(path) DO UPDATE SET hash = ?, indexed_at = CURRENT_TIMESTAMP
                """,
                (str(file), content_hash, content_hash),
            )
            conn.commit()

    def get(self, file: Path) -> FileRecord | None:
        """Get a file record, or None if not indexed."""
        with self._lock:
            conn = self._get_connection()
            row = conn.execute("SELECT * FROM files WHERE path = ?", (str(file),)).fetchone()
        if row is None:
            return None
        return FileRecord.from_row(row)

    def get_hashes(self, files: Iterable[Path]) -> dict[Path, str]:
        """Get the recorded content hash of every known file among the given paths."""
        paths = sorted({str(f) for f in files})
        if not paths:
            return {}
        placeholders = ",".join("?" * len(paths))
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"SELECT path, hash FROM files WHERE path IN ({placeholders})", paths
            ).fetchall()
        return {Path(row["path"]): row["hash"] for row in rows}

    def delete(self, file: Path) -> None:
        """Delete a file record."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM files WHERE path = ?", (str(file),))
            conn.commit()

    def clear(self) -> None:
        """Delete all file records."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM files")
            conn.commit()


def compute_content_hash(content: bytes) -> str:
    """Compute SHA-256 hash of raw file contents."""
    return hashlib.sha256(content).hexdigest()


def compute_file_hash(file: Path) -> str:
    """Compute SHA-256 hash of a file's contents."""
    return compute_content_hash(file.read_bytes())
