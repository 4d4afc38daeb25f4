"""Decide which metrics rows an indexing event invalidates.

Fan-in and fan-out are one-hop aggregates, so every rule here looks exactly
one edge away from the changed entities and never further.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from codemeter.core.graph import GraphSnapshot

LockKey = tuple[str, str]


@dataclass(frozen=True)
class AffectedSet:
    """Files and symbols whose metrics rows must be recomputed."""

    files: frozenset[Path] = frozenset()
    symbols: frozenset[int] = frozenset()

    def __or__(self, other: AffectedSet) -> AffectedSet:
        return AffectedSet(self.files | other.files, self.symbols | other.symbols)

    def __le__(self, other: AffectedSet) -> bool:
        return self.files <= other.files and self.symbols <= other.symbols

    def __bool__(self) -> bool:
        return bool(self.files or self.symbols)

    def __len__(self) -> int:
        return len(self.files) + len(self.symbols)

    def lock_keys(self) -> list[LockKey]:
        """Keys in a fixed global order, so concurrent lockers never deadlock."""
        keys = [("file", str(f)) for f in self.files]
        keys.extend(("symbol", f"{s:020d}") for s in self.symbols)
        return sorted(keys)


def _expand(snapshot: GraphSnapshot, files: set[Path], symbols: set[int]) -> AffectedSet:
    """Add the one-hop neighbors of `symbols` and the files that own them."""
    neighbors = snapshot.neighbors(symbols)
    all_symbols = symbols | neighbors
    for sid in all_symbols:
        path = snapshot.file_of(sid)
        if path is not None:
            files.add(path)
    return AffectedSet(frozenset(files), frozenset(all_symbols))


def affected_by_file(snapshot: GraphSnapshot, path: Path) -> AffectedSet:
    """The file, its symbols, and every file/symbol one edge away from them."""
    own = {s.id for s in snapshot.symbols_in_file(path)}
    return _expand(snapshot, {path}, own)


def affected_by_symbols(snapshot: GraphSnapshot, symbol_ids: Iterable[int]) -> AffectedSet:
    """The symbols, their files, and their one-hop neighborhood.

    IDs missing from the snapshot are kept so their rows get deleted.
    """
    ids = set(symbol_ids)
    return _expand(snapshot, set(), ids)


def affected_by_edges(
    snapshot: GraphSnapshot, endpoints: Iterable[tuple[int, int]]
) -> AffectedSet:
    """Both endpoints of each added or removed edge, and their files.

    Only the endpoints' counts change, so no further neighborhood is needed.
    """
    files: set[Path] = set()
    symbols: set[int] = set()
    for caller_id, callee_id in endpoints:
        symbols.update((caller_id, callee_id))
    for sid in symbols:
        path = snapshot.file_of(sid)
        if path is not None:
            files.add(path)
    return AffectedSet(frozenset(files), frozenset(symbols))


def affected_by_full(snapshot: GraphSnapshot) -> AffectedSet:
    """Every file and every symbol in the graph."""
    return AffectedSet(frozenset(snapshot.files), frozenset(snapshot.complete_symbols))
