"""Repository that coordinates all storage operations."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from codemeter.core.storage.edges import EdgeStorage
from codemeter.core.storage.files import FileStorage
from codemeter.core.storage.metrics import MetricsStorage
from codemeter.core.storage.symbols import SymbolStorage

_SCHEMA = """
CREATE TABLE IF NOT EXISTS symbols (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    qualified_name TEXT NOT NULL,
    file TEXT NOT NULL,
    line INTEGER NOT NULL,
    end_line INTEGER,
    byte_start INTEGER,
    byte_end INTEGER,
    type TEXT NOT NULL,
    parent_id INTEGER,
    FOREIGN KEY (parent_id) REFERENCES symbols(id)
);

CREATE TABLE IF NOT EXISTS edges (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    caller_id INTEGER NOT NULL,
    callee_id INTEGER NOT NULL,
    call_line INTEGER NOT NULL DEFAULT 0,
    call_type TEXT DEFAULT 'call',
    FOREIGN KEY (caller_id) REFERENCES symbols(id),
    FOREIGN KEY (callee_id) REFERENCES symbols(id)
);

CREATE TABLE IF NOT EXISTS files (
    path TEXT PRIMARY KEY,
    hash TEXT NOT NULL,
    indexed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS file_metrics (
    file_path TEXT PRIMARY KEY,
    symbol_count INTEGER NOT NULL,
    loc INTEGER NOT NULL,
    estimated_loc REAL NOT NULL,
    fan_in INTEGER NOT NULL,
    fan_out INTEGER NOT NULL,
    complexity_score REAL NOT NULL,
    last_updated INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS symbol_metrics (
    symbol_id INTEGER PRIMARY KEY,
    symbol_name TEXT NOT NULL,
    kind TEXT NOT NULL,
    file_path TEXT NOT NULL,
    loc INTEGER NOT NULL,
    estimated_loc REAL NOT NULL,
    fan_in INTEGER NOT NULL,
    fan_out INTEGER NOT NULL,
    cyclomatic_complexity INTEGER NOT NULL,
    last_updated INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_edges_caller ON edges(caller_id);
CREATE INDEX IF NOT EXISTS idx_edges_callee ON edges(callee_id);
CREATE INDEX IF NOT EXISTS idx_symbols_file ON symbols(file);
CREATE INDEX IF NOT EXISTS idx_symbol_metrics_file ON symbol_metrics(file_path);
CREATE INDEX IF NOT EXISTS idx_file_metrics_complexity ON file_metrics(complexity_score);
"""


class GraphRepository:
    """Facade that coordinates symbols, edges, files and metrics storage.

    A single connection is shared by every storage; the re-entrant lock is
    held from execute through fetch so the repository can be used from
    several threads.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()

        self.symbols = SymbolStorage(self._get_connection, self._lock)
        self.edges = EdgeStorage(self._get_connection, self._lock)
        self.files = FileStorage(self._get_connection, self._lock)
        self.metrics = MetricsStorage(self._get_connection, self._lock)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create a database connection."""
        with self._lock:
            if self._conn is None:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
                self._conn.row_factory = sqlite3.Row
                self._conn.executescript(_SCHEMA)
            return self._conn

    @contextmanager
    def read_transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the lock and one read transaction so every query sees the same data."""
        with self._lock:
            conn = self._get_connection()
            if conn.in_transaction:
                conn.commit()
            conn.execute("BEGIN")
            try:
                yield conn
            finally:
                conn.rollback()

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self) -> GraphRepository:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        self.close()

    def delete_file(self, file: Path) -> None:
        """Delete a file and all its symbols/edges from the graph."""
        with self._lock:
            self.edges.delete_for_file(file)
            self.symbols.delete_in_file(file)
            self.files.delete(file)

    def delete_symbol(self, symbol_id: int) -> None:
        """Delete a symbol and every edge touching it from the graph."""
        with self._lock:
            self.edges.delete_for_symbol(symbol_id)
            self.symbols.delete(symbol_id)

    def get_stats(self) -> dict[str, int | datetime | None]:
        """Get graph and metrics statistics."""
        with self._lock:
            conn = self._get_connection()

            file_count = conn.execute("SELECT COUNT(DISTINCT file) FROM symbols").fetchone()[0]
            symbol_count = conn.execute("SELECT COUNT(*) FROM symbols").fetchone()[0]
            edge_count = conn.execute("SELECT COUNT(*) FROM edges").fetchone()[0]
            last_indexed_row = conn.execute("SELECT MAX(indexed_at) FROM files").fetchone()[0]
            file_rows, symbol_rows = self.metrics.counts()

        last_indexed = datetime.fromisoformat(last_indexed_row) if last_indexed_row else None

        return {
            "files": file_count,
            "symbols": symbol_count,
            "edges": edge_count,
            "file_metrics": file_rows,
            "symbol_metrics": symbol_rows,
            "last_indexed": last_indexed,
        }

    def clear(self) -> None:
        """Clear all data from the database."""
        with self._lock:
            self.metrics.clear()
            self.edges.clear()
            self.symbols.clear()
            self.files.clear()


def get_default_db_path(project_root: Path) -> Path:
    """Get the default database path for a project."""
    return project_root / ".codemeter" / "index.db"
