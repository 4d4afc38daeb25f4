"""In-memory snapshot of the part of the graph a recomputation reads."""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from pathlib import Path

from codemeter.core.models import Edge, Symbol

_snapshot_ids = itertools.count(1)


class GraphSnapshot:
    """Directed symbol graph captured from one consistent read of the store.

    Uses adjacency lists for O(1) neighbor lookup. Symbols are either
    *complete* (every edge touching them was loaded) or context-only (loaded
    because they are the other endpoint of a complete symbol's edge). Files
    are complete when all of their symbols and their content were loaded.
    """

    __slots__ = (
        "snapshot_id",
        "_out",
        "_in",
        "_symbols",
        "_edge_ids",
        "_complete_symbols",
        "_file_symbols",
        "_contents",
        "_read_errors",
        "_hashes",
    )

    def __init__(self) -> None:
        self.snapshot_id = next(_snapshot_ids)
        self._out: dict[int, list[Edge]] = {}
        self._in: dict[int, list[Edge]] = {}
        self._symbols: dict[int, Symbol] = {}
        self._edge_ids: set[int] = set()
        self._complete_symbols: set[int] = set()
        self._file_symbols: dict[Path, list[int]] = {}
        self._contents: dict[Path, bytes] = {}
        self._read_errors: dict[Path, str] = {}
        self._hashes: dict[Path, str] = {}

    def add_symbol(self, symbol: Symbol, complete: bool = True) -> None:
        """Add a symbol node. O(1)."""
        self._symbols[symbol.id] = symbol
        self._out.setdefault(symbol.id, [])
        self._in.setdefault(symbol.id, [])
        if complete:
            self._complete_symbols.add(symbol.id)

    def add_edge(self, edge: Edge) -> None:
        """Add an edge once, however many endpoints requested it. O(1)."""
        if edge.id in self._edge_ids:
            return
        self._edge_ids.add(edge.id)
        self._out.setdefault(edge.caller_id, []).append(edge)
        self._in.setdefault(edge.callee_id, []).append(edge)

    def add_file(
        self,
        path: Path,
        symbol_ids: Iterable[int],
        content: bytes | None,
        recorded_hash: str | None = None,
        read_error: str | None = None,
    ) -> None:
        """Register a file whose symbols were all loaded."""
        self._file_symbols[path] = list(symbol_ids)
        if content is not None:
            self._contents[path] = content
        if read_error is not None:
            self._read_errors[path] = read_error
        if recorded_hash is not None:
            self._hashes[path] = recorded_hash

    def get_symbol(self, symbol_id: int) -> Symbol | None:
        """Get symbol by ID. O(1)."""
        return self._symbols.get(symbol_id)

    def is_complete_symbol(self, symbol_id: int) -> bool:
        return symbol_id in self._complete_symbols

    def covers_file(self, path: Path) -> bool:
        return path in self._file_symbols

    def outgoing(self, symbol_id: int) -> list[Edge]:
        """Edges originating from a symbol. O(out-degree)."""
        return self._out.get(symbol_id, [])

    def incoming(self, symbol_id: int) -> list[Edge]:
        """Edges targeting a symbol. O(in-degree)."""
        return self._in.get(symbol_id, [])

    def symbols_in_file(self, path: Path) -> list[Symbol]:
        return [self._symbols[sid] for sid in self._file_symbols.get(path, [])]

    def file_of(self, symbol_id: int) -> Path | None:
        symbol = self._symbols.get(symbol_id)
        return symbol.file if symbol else None

    def content(self, path: Path) -> bytes | None:
        return self._contents.get(path)

    def read_error(self, path: Path) -> str | None:
        return self._read_errors.get(path)

    def recorded_hash(self, path: Path) -> str | None:
        return self._hashes.get(path)

    def neighbors(self, symbol_ids: Iterable[int]) -> set[int]:
        """Symbols one edge away from any of the given symbols (not transitive)."""
        result: set[int] = set()
        for sid in symbol_ids:
            result.update(e.callee_id for e in self._out.get(sid, []))
            result.update(e.caller_id for e in self._in.get(sid, []))
        return result

    @property
    def files(self) -> list[Path]:
        return sorted(self._file_symbols)

    @property
    def complete_symbols(self) -> set[int]:
        return set(self._complete_symbols)

    @property
    def num_nodes(self) -> int:
        return len(self._symbols)

    @property
    def num_edges(self) -> int:
        return len(self._edge_ids)

    def __repr__(self) -> str:
        return (
            f"GraphSnapshot(id={self.snapshot_id}, nodes={self.num_nodes}, "
            f"edges={self.num_edges}, files={len(self._file_symbols)})"
        )
