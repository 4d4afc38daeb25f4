"""Metrics storage operations.

The two metrics tables are owned by the metrics engine. Every mutation goes
through a whole-row upsert or a delete; reads never recompute anything, so a
miss means the entity has not been metered yet.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable
from pathlib import Path

from codemeter.core.exceptions import MetricsStoreError
from codemeter.core.models import FileMetrics, MetricsBatch, SymbolMetrics

log = logging.getLogger(__name__)

_UPSERT_FILE = """
INSERT OR REPLACE INTO file_metrics (
    file_path, symbol_count, loc, estimated_loc,
    fan_in, fan_out, complexity_score, last_updated
) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
"""

_UPSERT_SYMBOL = """
INSERT OR REPLACE INTO symbol_metrics (
    symbol_id, symbol_name, kind, file_path,
    loc, estimated_loc, fan_in, fan_out,
    cyclomatic_complexity, last_updated
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def _file_params(row: FileMetrics) -> tuple[object, ...]:
    return (
        str(row.file_path),
        row.symbol_count,
        row.loc,
        row.estimated_loc,
        row.fan_in,
        row.fan_out,
        row.complexity_score,
        row.last_updated,
    )


def _symbol_params(row: SymbolMetrics) -> tuple[object, ...]:
    return (
        row.symbol_id,
        row.symbol_name,
        row.kind,
        str(row.file_path),
        row.loc,
        row.estimated_loc,
        row.fan_in,
        row.fan_out,
        row.cyclomatic_complexity,
        row.last_updated,
    )


class MetricsStorage:
    """Storage operations for file and symbol metrics."""

    def __init__(
        self, get_connection: Callable[[], sqlite3.Connection], lock: threading.RLock
    ) -> None:
        self._get_connection = get_connection
        self._lock = lock

    def upsert_file_metrics(self, row: FileMetrics) -> None:
        """Insert or fully replace the metrics row for a file."""
        self.apply(MetricsBatch(file_rows=[row]))

    def upsert_symbol_metrics(self, row: SymbolMetrics) -> None:
        """Insert or fully replace the metrics row for a symbol."""
        self.apply(MetricsBatch(symbol_rows=[row]))

    def delete_file_metrics(self, file: Path) -> int:
        """Delete a file's metrics row and every symbol row in that file.

        Returns the number of symbol rows deleted.
        """
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                "DELETE FROM symbol_metrics WHERE file_path = ?", (str(file),)
            )
            conn.execute("DELETE FROM file_metrics WHERE file_path = ?", (str(file),))
            conn.commit()
            return cursor.rowcount

    def delete_symbol_metrics(self, symbol_id: int) -> bool:
        """Delete a symbol's metrics row. Returns True if it existed."""
        with self._lock:
            conn = self._get_connection()
            cursor = conn.execute(
                "DELETE FROM symbol_metrics WHERE symbol_id = ?", (symbol_id,)
            )
            conn.commit()
            return cursor.rowcount > 0

    def apply(self, batch: MetricsBatch) -> None:
        """Apply all writes of a batch in one transaction.

        Deletions run before upserts. On failure nothing from the batch is
        kept and MetricsStoreError is raised.
        """
        if not batch:
            return
        with self._lock:
            conn = self._get_connection()
            try:
                for symbol_id in sorted(batch.deleted_symbols):
                    conn.execute("DELETE FROM symbol_metrics WHERE symbol_id = ?", (symbol_id,))
                for file in sorted(batch.deleted_files):
                    conn.execute("DELETE FROM symbol_metrics WHERE file_path = ?", (str(file),))
                    conn.execute("DELETE FROM file_metrics WHERE file_path = ?", (str(file),))
                conn.executemany(_UPSERT_FILE, [_file_params(r) for r in batch.file_rows])
                conn.executemany(_UPSERT_SYMBOL, [_symbol_params(r) for r in batch.symbol_rows])
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise MetricsStoreError(f"Failed to write metrics batch: {e}") from e
        log.debug(
            "Applied metrics batch: %d file rows, %d symbol rows, %d file deletes, "
            "%d symbol deletes",
            len(batch.file_rows),
            len(batch.symbol_rows),
            len(batch.deleted_files),
            len(batch.deleted_symbols),
        )

    def get_file_metrics(self, file: Path) -> FileMetrics | None:
        """Get metrics for a file, or None if it has not been metered."""
        with self._lock:
            conn = self._get_connection()
            row = conn.execute(
                "SELECT * FROM file_metrics WHERE file_path = ?", (str(file),)
            ).fetchone()
        if row is None:
            return None
        return FileMetrics.from_row(row)

    def get_symbol_metrics(self, symbol_id: int) -> SymbolMetrics | None:
        """Get metrics for a symbol, or None if it has not been metered."""
        with self._lock:
            conn = self._get_connection()
            row = conn.execute(
                "SELECT * FROM symbol_metrics WHERE symbol_id = ?", (symbol_id,)
            ).fetchone()
        if row is None:
            return None
        return SymbolMetrics.from_row(row)

    def list_file_metrics(self, prefix: str | None = None) -> list[FileMetrics]:
        """Get file metrics ordered by path, optionally restricted to a path prefix."""
        with self._lock:
            conn = self._get_connection()
            if prefix is not None:
                rows = conn.execute(
                    "SELECT * FROM file_metrics WHERE substr(file_path, 1, ?) = ? "
                    "ORDER BY file_path",
                    (len(prefix), prefix),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM file_metrics ORDER BY file_path").fetchall()
        return [FileMetrics.from_row(row) for row in rows]

    def list_symbol_metrics(self, file: Path | None = None) -> list[SymbolMetrics]:
        """Get symbol metrics ordered by ID, optionally only those in one file."""
        with self._lock:
            conn = self._get_connection()
            if file is not None:
                rows = conn.execute(
                    "SELECT * FROM symbol_metrics WHERE file_path = ? ORDER BY symbol_id",
                    (str(file),),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM symbol_metrics ORDER BY symbol_id").fetchall()
        return [SymbolMetrics.from_row(row) for row in rows]

    def symbol_ids_in_file(self, file: Path) -> set[int]:
        """Get the IDs of all symbol rows stored for a file."""
        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                "SELECT symbol_id FROM symbol_metrics WHERE file_path = ?", (str(file),)
            ).fetchall()
        return {row["symbol_id"] for row in rows}

    def get_hotspots(
        self,
        limit: int = 20,
        min_loc: int | None = None,
        min_fan_in: int | None = None,
        min_fan_out: int | None = None,
    ) -> list[FileMetrics]:
        """Get files with the highest complexity score, optionally filtered by thresholds."""
        clauses: list[str] = []
        params: list[int] = []
        if min_loc is not None:
            clauses.append("loc >= ?")
            params.append(min_loc)
        if min_fan_in is not None:
            clauses.append("fan_in >= ?")
            params.append(min_fan_in)
        if min_fan_out is not None:
            clauses.append("fan_out >= ?")
            params.append(min_fan_out)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)

        with self._lock:
            conn = self._get_connection()
            rows = conn.execute(
                f"""
                SELECT * FROM file_metrics {where}
                ORDER BY complexity_score DESC, file_path
                LIMIT ?
                """,
                params,
            ).fetchall()
        return [FileMetrics.from_row(row) for row in rows]

    def counts(self) -> tuple[int, int]:
        """Get the number of (file, symbol) metrics rows."""
        with self._lock:
            conn = self._get_connection()
            files = conn.execute("SELECT COUNT(*) FROM file_metrics").fetchone()[0]
            symbols = conn.execute("SELECT COUNT(*) FROM symbol_metrics").fetchone()[0]
        return files, symbols

    def clear(self) -> None:
        """Delete all metrics rows."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("DELETE FROM symbol_metrics")
            conn.execute("DELETE FROM file_metrics")
            conn.commit()
