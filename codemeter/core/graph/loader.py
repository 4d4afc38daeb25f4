"""Load GraphSnapshot from GraphRepository."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from codemeter.core.exceptions import GraphQueryFailedError
from codemeter.core.graph.base import GraphSnapshot

if TYPE_CHECKING:
    from codemeter.core.storage import GraphRepository

log = logging.getLogger(__name__)


def load_snapshot(
    repo: GraphRepository,
    files: Iterable[Path] = (),
    symbol_ids: Iterable[int] = (),
    root: Path | None = None,
) -> GraphSnapshot:
    """Load everything needed to meter the given files and symbols.

    Reads happen inside one read transaction: the files' symbols, the
    requested symbols, every edge touching them and the symbols at the other
    end of those edges. Cost is proportional to the local edge degree, not to
    the size of the graph.
    """
    file_set = set(files)
    snapshot = GraphSnapshot()

    try:
        with repo.read_transaction():
            core = {s.id: s for s in repo.symbols.get_in_files(file_set)}
            core.update(repo.symbols.get_many(set(symbol_ids) - core.keys()))
            edges = repo.edges.get_touching(core)

            far_ids = {e.caller_id for e in edges} | {e.callee_id for e in edges}
            context = repo.symbols.get_many(far_ids - core.keys())
            hashes = repo.files.get_hashes(file_set)
    except sqlite3.Error as e:
        raise GraphQueryFailedError(f"Failed to load graph snapshot: {e}") from e

    for symbol in core.values():
        snapshot.add_symbol(symbol)
    for symbol in context.values():
        snapshot.add_symbol(symbol, complete=False)
    for edge in edges:
        snapshot.add_edge(edge)

    by_file: dict[Path, list[int]] = {path: [] for path in file_set}
    for symbol in core.values():
        if symbol.file in by_file:
            by_file[symbol.file].append(symbol.id)

    for path, ids in by_file.items():
        content, error = (None, None) if not ids else _read_content(path, root)
        snapshot.add_file(path, sorted(ids), content, hashes.get(path), error)

    log.debug("Loaded %r", snapshot)
    return snapshot


def load_full_snapshot(repo: GraphRepository, root: Path | None = None) -> GraphSnapshot:
    """Load the whole graph, every file and symbol complete. O(V + E)."""
    snapshot = GraphSnapshot()

    try:
        with repo.read_transaction():
            symbols = repo.symbols.get_all()
            edges = repo.edges.get_all()
            paths = repo.symbols.file_paths()
            hashes = repo.files.get_hashes(paths)
    except sqlite3.Error as e:
        raise GraphQueryFailedError(f"Failed to load graph snapshot: {e}") from e

    by_file: dict[Path, list[int]] = {path: [] for path in paths}
    for symbol in symbols:
        snapshot.add_symbol(symbol)
        by_file[symbol.file].append(symbol.id)
    for edge in edges:
        snapshot.add_edge(edge)
    for path, ids in by_file.items():
        content, error = _read_content(path, root)
        snapshot.add_file(path, ids, content, hashes.get(path), error)

    log.debug("Loaded full %r", snapshot)
    return snapshot


def _read_content(path: Path, root: Path | None) -> tuple[bytes | None, str | None]:
    """Read a file's bytes from disk, returning (content, error message)."""
    disk_path = path if path.is_absolute() or root is None else root / path
    try:
        return disk_path.read_bytes(), None
    except OSError as e:
        log.warning("Cannot read %s: %s", disk_path, e)
        return None, f"Cannot read {disk_path}: {e}"
