"""Data models for the code graph and its precomputed metrics."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class SymbolType(Enum):
    """Types of symbols that can be indexed."""

    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    VARIABLE = "variable"
    TYPE = "type"


class EdgeType(Enum):
    """Types of relationships between symbols."""

    CALL = "call"
    REFERENCE = "reference"
    IMPORT = "import"
    INHERIT = "inherit"
    CONTAINS = "contains"


@dataclass(frozen=True)
class Symbol:
    """A code symbol with its line and byte span."""

    id: int
    name: str
    qualified_name: str
    file: Path
    line: int
    end_line: int | None
    type: SymbolType
    byte_start: int | None = None
    byte_end: int | None = None
    parent_id: int | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Symbol:
        """Create a Symbol from a database row."""
        return cls(
            id=row["id"],
            name=row["name"],
            qualified_name=row["qualified_name"],
            file=Path(row["file"]),
            line=row["line"],
            end_line=row["end_line"],
            type=SymbolType(row["type"]),
            byte_start=row["byte_start"],
            byte_end=row["byte_end"],
            parent_id=row["parent_id"],
        )


@dataclass(frozen=True)
class Edge:
    """A directed relationship between two symbols."""

    id: int
    caller_id: int
    callee_id: int
    call_line: int
    call_type: EdgeType

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Edge:
        """Create an Edge from a database row."""
        return cls(
            id=row["id"],
            caller_id=row["caller_id"],
            callee_id=row["callee_id"],
            call_line=row["call_line"],
            call_type=EdgeType(row["call_type"]),
        )


@dataclass
class FileRecord:
    """A record of an indexed file."""

    path: Path
    hash: str
    indexed_at: datetime

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> FileRecord:
        """Create a FileRecord from a database row."""
        return cls(
            path=Path(row["path"]),
            hash=row["hash"],
            indexed_at=datetime.fromisoformat(row["indexed_at"]),
        )


LOC_WEIGHT = 0.1
FAN_IN_WEIGHT = 0.5
FAN_OUT_WEIGHT = 0.3

# Cyclomatic complexity reported until control-flow analysis exists.
PLACEHOLDER_CYCLOMATIC_COMPLEXITY = 1


def calculate_complexity(loc: int, fan_in: int, fan_out: int) -> float:
    """Weighted file complexity. Incoming dependencies weigh more than outgoing ones."""
    return loc * LOC_WEIGHT + fan_in * FAN_IN_WEIGHT + fan_out * FAN_OUT_WEIGHT


class ComplexitySource(Enum):
    """Where a symbol's cyclomatic complexity came from."""

    PLACEHOLDER = "placeholder"
    MEASURED = "measured"


@dataclass(frozen=True)
class FileMetrics:
    """Precomputed size and coupling metrics for one file."""

    file_path: Path
    symbol_count: int
    loc: int
    estimated_loc: float
    fan_in: int
    fan_out: int
    last_updated: int

    @property
    def complexity_score(self) -> float:
        return calculate_complexity(self.loc, self.fan_in, self.fan_out)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> FileMetrics:
        """Create FileMetrics from a database row.

        The stored complexity_score column is ignored; the score is always
        derived from the row's own fields.
        """
        return cls(
            file_path=Path(row["file_path"]),
            symbol_count=row["symbol_count"],
            loc=row["loc"],
            estimated_loc=row["estimated_loc"],
            fan_in=row["fan_in"],
            fan_out=row["fan_out"],
            last_updated=row["last_updated"],
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "file_path": str(self.file_path),
            "symbol_count": self.symbol_count,
            "loc": self.loc,
            "estimated_loc": self.estimated_loc,
            "fan_in": self.fan_in,
            "fan_out": self.fan_out,
            "complexity_score": self.complexity_score,
            "last_updated": self.last_updated,
        }


@dataclass(frozen=True)
class SymbolMetrics:
    """Precomputed size and coupling metrics for one symbol."""

    symbol_id: int
    symbol_name: str
    kind: str
    file_path: Path
    loc: int
    estimated_loc: float
    fan_in: int
    fan_out: int
    last_updated: int
    cyclomatic_complexity: int = PLACEHOLDER_CYCLOMATIC_COMPLEXITY
    # Not persisted: every stored value is currently a placeholder.
    complexity_source: ComplexitySource = ComplexitySource.PLACEHOLDER

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SymbolMetrics:
        """Create SymbolMetrics from a database row."""
        return cls(
            symbol_id=row["symbol_id"],
            symbol_name=row["symbol_name"],
            kind=row["kind"],
            file_path=Path(row["file_path"]),
            loc=row["loc"],
            estimated_loc=row["estimated_loc"],
            fan_in=row["fan_in"],
            fan_out=row["fan_out"],
            last_updated=row["last_updated"],
            cyclomatic_complexity=row["cyclomatic_complexity"],
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "symbol_id": self.symbol_id,
            "symbol_name": self.symbol_name,
            "kind": self.kind,
            "file_path": str(self.file_path),
            "loc": self.loc,
            "estimated_loc": self.estimated_loc,
            "fan_in": self.fan_in,
            "fan_out": self.fan_out,
            "cyclomatic_complexity": self.cyclomatic_complexity,
            "complexity_source": self.complexity_source.value,
            "last_updated": self.last_updated,
        }


@dataclass
class MetricsBatch:
    """All metrics writes produced by one recomputation, applied together."""

    file_rows: list[FileMetrics] = field(default_factory=list)
    symbol_rows: list[SymbolMetrics] = field(default_factory=list)
    deleted_files: set[Path] = field(default_factory=set)
    deleted_symbols: set[int] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(
            self.file_rows or self.symbol_rows or self.deleted_files or self.deleted_symbols
        )


class RecomputeStats:
    """Statistics from a metrics recomputation."""

    def __init__(self) -> None:
        self.files_updated: int = 0
        self.symbols_updated: int = 0
        self.files_deleted: int = 0
        self.symbols_deleted: int = 0
        self.retries: int = 0
        self.errors: list[tuple[str, str]] = []

    def merge(self, other: RecomputeStats) -> None:
        self.files_updated += other.files_updated
        self.symbols_updated += other.symbols_updated
        self.files_deleted += other.files_deleted
        self.symbols_deleted += other.symbols_deleted
        self.retries += other.retries
        self.errors.extend(other.errors)

    def __repr__(self) -> str:
        return (
            f"RecomputeStats(files_updated={self.files_updated}, "
            f"symbols_updated={self.symbols_updated}, files_deleted={self.files_deleted}, "
            f"symbols_deleted={self.symbols_deleted}, retries={self.retries}, "
            f"errors={len(self.errors)})"
        )
