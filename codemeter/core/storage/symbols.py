"""Symbol storage operations."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from codemeter.core.exceptions import EntityNotFoundError
from codemeter.core.models import Symbol, SymbolType


class SymbolStorage:
    """Storage operations for symbols."""

    def __init__(
        self, get_connection: Callable[[], sqlite3.Connection], lock: threading.RLock
    ) -> None:
        self._get_connection = get_connection
        self._lock = lock

    def insert(
        self,
        name: str,
        qualified_name: str,
        file: Path,
        line: int,
        symbol_type: SymbolType,
        end_line: int | None = None,
        byte_start: int | None = None,
        byte_end: int | None = None,
        parent_id: int | None = None,
    ) -> int:
        """Insert a symbol and return its ID."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                """
                INSERT INTO symbols (name, qualified_name, file, line, end_line,
                                     byte_start, byte_end, type, parent_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    name,
                    qualified_name,
                    str(file),
                    line,
                    end_line,
                    byte_start,
                    byte_end,
                    symbol_type.value,
                    parent_id,
                ),
            )
            conn.commit()
            return cursor.lastrowid  # type: ignore[return-value]

    def get_by_id(self, symbol_id: int) -> Symbol:
        """Get a symbol by its ID."""
        with self._lock:
            conn = self._get_connection()
            row = conn.execute("SELECT * FROM symbols WHERE id = ?", (symbol_id,)).fetchone()
        if row is None:
            raise EntityNotFoundError(f"Symbol with id {symbol_id} not found")
        return Symbol.from_row(row)

    def get_many(self, symbol_ids: Iterable[int]) -> dict[int, Symbol]:
        """Get every existing symbol among the given IDs, keyed by ID."""
        ids = sorted(set(symbol_ids))
        if not ids:
            return {}
        placeholders = ",".join("?" * len(ids))
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"SELECT * FROM symbols WHERE id IN ({placeholders})", ids
            ).fetchall()
        return {row["id"]: Symbol.from_row(row) for row in rows}

    def get_in_file(self, file: Path) -> list[Symbol]:
        """Get all symbols in a file."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT * FROM symbols WHERE file = ? ORDER BY line",
                (str(file),),
            ).fetchall()
        return [Symbol.from_row(row) for row in rows]

    def get_in_files(self, files: Iterable[Path]) -> list[Symbol]:
        """Get all symbols contained in any of the given files."""
        paths = sorted({str(f) for f in files})
        if not paths:
            return []
        placeholders = ",".join("?" * len(paths))
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"SELECT * FROM symbols WHERE file IN ({placeholders}) ORDER BY file, line",
                paths,
            ).fetchall()
        return [Symbol.from_row(row) for row in rows]

    def get_all(self) -> list[Symbol]:
        """Get every symbol in the graph."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute("SELECT * FROM symbols ORDER BY file, line").fetchall()
        return [Symbol.from_row(row) for row in rows]

    def file_paths(self) -> list[Path]:
        """Get the distinct files that contain at least one symbol."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute("SELECT DISTINCT file FROM symbols ORDER BY file").fetchall()
        return [Path(row["file"]) for row in rows]

    def delete(self, symbol_id: int) -> bool:
        """Delete one symbol. Returns True if it existed."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM symbols WHERE id = ?", (symbol_id,))
            conn.commit()
            return cursor.rowcount > 0

    def delete_in_file(self, file: Path) -> int:
        """Delete all symbols in a file. Returns count deleted."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM symbols WHERE file = ?", (str(file),))
            conn.commit()
            return cursor.rowcount

    def clear(self) -> None:
        """Delete all symbols."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM symbols")
            conn.commit()
