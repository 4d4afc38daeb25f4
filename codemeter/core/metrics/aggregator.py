"""Compute file and symbol metrics from a graph snapshot.

All functions here are pure: they read a GraphSnapshot and return rows.
Persisting them is the metrics store's job.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from codemeter.core.exceptions import (
    CodemeterError,
    EntityNotFoundError,
    GraphQueryFailedError,
    InconsistentSnapshotError,
)
from codemeter.core.graph import GraphSnapshot
from codemeter.core.models import FileMetrics, Symbol, SymbolMetrics
from codemeter.core.storage import compute_content_hash

BYTES_PER_LINE = 40.0

ProgressCallback = Callable[[int, int], None]


@dataclass
class Aggregate:
    """Rows computed from one snapshot, plus the entities that failed."""

    snapshot_id: int
    files: list[FileMetrics] = field(default_factory=list)
    symbols: list[SymbolMetrics] = field(default_factory=list)
    file_failures: dict[Path, CodemeterError] = field(default_factory=dict)
    symbol_failures: dict[int, CodemeterError] = field(default_factory=dict)


def estimate_loc(byte_length: int) -> float:
    """Cheap size proxy: one line per 40 bytes."""
    return byte_length / BYTES_PER_LINE


def count_lines(content: bytes) -> int:
    """Exact line count: newline count + 1."""
    return content.count(b"\n") + 1


def symbol_loc(symbol: Symbol) -> int:
    if symbol.end_line is not None and symbol.end_line >= symbol.line:
        return symbol.end_line - symbol.line + 1
    return 1


def symbol_byte_length(symbol: Symbol) -> int:
    if (
        symbol.byte_start is not None
        and symbol.byte_end is not None
        and symbol.byte_end > symbol.byte_start
    ):
        return symbol.byte_end - symbol.byte_start
    return 1


def _now() -> int:
    return int(time.time())


def compute_file_metrics(
    snapshot: GraphSnapshot, path: Path, now: int | None = None
) -> FileMetrics:
    """Compute the metrics row for one file.

    Fan-in counts edges from symbols in other files into this file's
    symbols; fan-out counts edges from this file's symbols to symbols in
    other files.

    Raises:
        EntityNotFoundError: The file has no symbols in the graph.
        GraphQueryFailedError: The file content could not be read.
        InconsistentSnapshotError: The content on disk is not the content
            the graph was built from.
    """
    if not snapshot.covers_file(path):
        raise ValueError(f"Snapshot {snapshot.snapshot_id} does not cover {path}")

    symbols = snapshot.symbols_in_file(path)
    if not symbols:
        raise EntityNotFoundError(f"File {path} has no indexed symbols")

    content = snapshot.content(path)
    if content is None:
        raise GraphQueryFailedError(snapshot.read_error(path) or f"No content for {path}")

    recorded = snapshot.recorded_hash(path)
    if recorded is not None and compute_content_hash(content) != recorded:
        raise InconsistentSnapshotError(
            f"Content of {path} changed since it was indexed "
            f"(snapshot {snapshot.snapshot_id})"
        )

    fan_in = 0
    fan_out = 0
    for symbol in symbols:
        fan_in += sum(
            1 for e in snapshot.incoming(symbol.id) if _is_other_file(snapshot, e.caller_id, path)
        )
        fan_out += sum(
            1 for e in snapshot.outgoing(symbol.id) if _is_other_file(snapshot, e.callee_id, path)
        )

    return FileMetrics(
        file_path=path,
        symbol_count=len(symbols),
        loc=count_lines(content),
        estimated_loc=estimate_loc(len(content)),
        fan_in=fan_in,
        fan_out=fan_out,
        last_updated=_now() if now is None else now,
    )


def compute_symbol_metrics(
    snapshot: GraphSnapshot, symbol_id: int, now: int | None = None
) -> SymbolMetrics:
    """Compute the metrics row for one symbol.

    Fan-in and fan-out count edges to or from any other symbol, same-file
    ones included. Self-references are not counted.

    Raises:
        EntityNotFoundError: The symbol is not in the graph.
    """
    symbol = snapshot.get_symbol(symbol_id)
    if symbol is None:
        raise EntityNotFoundError(f"Symbol with id {symbol_id} not found")
    if not snapshot.is_complete_symbol(symbol_id):
        raise ValueError(f"Snapshot {snapshot.snapshot_id} does not cover symbol {symbol_id}")

    fan_in = sum(
        1
        for e in snapshot.incoming(symbol_id)
        if _is_other_symbol(snapshot, e.caller_id, symbol_id)
    )
    fan_out = sum(
        1
        for e in snapshot.outgoing(symbol_id)
        if _is_other_symbol(snapshot, e.callee_id, symbol_id)
    )

    return SymbolMetrics(
        symbol_id=symbol.id,
        symbol_name=symbol.name,
        kind=symbol.type.value,
        file_path=symbol.file,
        loc=symbol_loc(symbol),
        estimated_loc=estimate_loc(symbol_byte_length(symbol)),
        fan_in=fan_in,
        fan_out=fan_out,
        last_updated=_now() if now is None else now,
    )


def compute_all(
    snapshot: GraphSnapshot,
    files: Iterable[Path],
    symbol_ids: Iterable[int] = (),
    now: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> Aggregate:
    """Compute rows for the given files, every symbol they contain and any extra symbols.

    A failure for one entity is recorded in the result and does not stop
    the others. A file failure does not prevent its symbols from being
    computed, since symbol rows do not depend on file content.
    """
    now = _now() if now is None else now
    result = Aggregate(snapshot_id=snapshot.snapshot_id)

    paths = sorted(files)
    wanted_symbols = set(symbol_ids)
    for i, path in enumerate(paths):
        wanted_symbols.update(s.id for s in snapshot.symbols_in_file(path))
        try:
            result.files.append(compute_file_metrics(snapshot, path, now))
        except CodemeterError as e:
            result.file_failures[path] = e
        if on_progress:
            on_progress(i + 1, len(paths))

    for symbol_id in sorted(wanted_symbols):
        try:
            result.symbols.append(compute_symbol_metrics(snapshot, symbol_id, now))
        except CodemeterError as e:
            result.symbol_failures[symbol_id] = e

    return result


def _is_other_file(snapshot: GraphSnapshot, symbol_id: int, path: Path) -> bool:
    other = snapshot.get_symbol(symbol_id)
    return other is not None and other.file != path


def _is_other_symbol(snapshot: GraphSnapshot, other_id: int, symbol_id: int) -> bool:
    return other_id != symbol_id and snapshot.get_symbol(other_id) is not None
