"""Edge storage operations."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Callable, Iterable
from pathlib import Path

from codemeter.core.models import Edge, EdgeType


class EdgeStorage:
    """Storage operations for edges (relationships between symbols)."""

    def __init__(
        self, get_connection: Callable[[], sqlite3.Connection], lock: threading.RLock
    ) -> None:
        self._get_connection = get_connection
        self._lock = lock

    def insert(
        self,
        caller_id: int,
        callee_id: int,
        call_line: int = 0,
        call_type: EdgeType = EdgeType.CALL,
    ) -> int:
        """Insert an edge and return its ID."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                """
                INSERT INTO edges (caller_id, callee_id, call_line, call_type)
                VALUES (?, ?, ?, ?)
                """,
                (caller_id, callee_id, call_line, call_type.value),
            )
            conn.commit()
            return cursor.lastrowid  # type: ignore[return-value]

    def get_outgoing(self, symbol_id: int) -> list[Edge]:
        """Get all edges originating from a symbol."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT * FROM edges WHERE caller_id = ? ORDER BY id", (symbol_id,)
            ).fetchall()
        return [Edge.from_row(row) for row in rows]

    def get_incoming(self, symbol_id: int) -> list[Edge]:
        """Get all edges targeting a symbol."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT * FROM edges WHERE callee_id = ? ORDER BY id", (symbol_id,)
            ).fetchall()
        return [Edge.from_row(row) for row in rows]

    def get_touching(self, symbol_ids: Iterable[int]) -> list[Edge]:
        """Get every edge with either endpoint among the given symbols."""
        ids = sorted(set(symbol_ids))
        if not ids:
            return []
        placeholders = ",".join("?" * len(ids))
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"""
                SELECT * FROM edges
                WHERE caller_id IN ({placeholders}) OR callee_id IN ({placeholders})
                ORDER BY id
                """,
                ids + ids,
            ).fetchall()
        return [Edge.from_row(row) for row in rows]

    def get_all(self) -> list[Edge]:
        """Get every edge in the graph."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute("SELECT * FROM edges ORDER BY id").fetchall()
        return [Edge.from_row(row) for row in rows]

    def delete(self, edge_id: int) -> bool:
        """Delete one edge. Returns True if it existed."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute("DELETE FROM edges WHERE id = ?", (edge_id,))
            conn.commit()
            return cursor.rowcount > 0

    def delete_for_symbol(self, symbol_id: int) -> int:
        """Delete all edges touching a symbol."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                "DELETE FROM edges WHERE caller_id = ? OR callee_id = ?",
                (symbol_id, symbol_id),
            )
            conn.commit()
            return cursor.rowcount

    def delete_for_file(self, file: Path) -> int:
        """Delete all edges involving symbols in a file."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                """
                DELETE FROM edges WHERE caller_id IN (SELECT id FROM symbols WHERE file = ?)
                OR callee_id IN (SELECT id FROM symbols WHERE file = ?)
                """,
                (str(file), str(file)),
            )
            conn.commit()
            return cursor.rowcount

    def clear(self) -> None:
        """Delete all edges."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM edges")
            conn.commit()
