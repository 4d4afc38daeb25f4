"""Metrics engine: keeps the metrics tables consistent with the graph.

Every recomputation follows the same steps:

1. Read the changed entities' neighborhood to find the affected set.
2. Lock every affected file/symbol key (sorted order).
3. Load one snapshot covering the affected set. If that snapshot shows a
   larger affected set than the one locked, unlock, grow and start over.
4. Compute all rows from that snapshot. If any row saw content that does
   not match the graph, discard everything and retry with a fresh snapshot.
5. Write the whole batch in one transaction and unlock.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path

from codemeter.config import MetricsSettings
from codemeter.core.exceptions import EntityNotFoundError, InconsistentSnapshotError
from codemeter.core.graph import GraphSnapshot, load_full_snapshot, load_snapshot
from codemeter.core.metrics.aggregator import Aggregate, ProgressCallback, compute_all
from codemeter.core.metrics.invalidation import (
    AffectedSet,
    affected_by_edges,
    affected_by_file,
    affected_by_full,
    affected_by_symbols,
)
from codemeter.core.metrics.locks import KeyedLocks
from codemeter.core.models import MetricsBatch, RecomputeStats
from codemeter.core.storage import GraphRepository

log = logging.getLogger(__name__)

Derive = Callable[[GraphSnapshot], AffectedSet]


class MetricsEngine:
    """Recomputes file and symbol metrics as the graph changes."""

    def __init__(self, repo: GraphRepository, settings: MetricsSettings | None = None) -> None:
        self._repo = repo
        self._settings = settings or MetricsSettings(project_root=Path.cwd(), db_path=repo.db_path)
        self._locks = KeyedLocks()

    @property
    def settings(self) -> MetricsSettings:
        return self._settings

    def refresh_file(self, path: Path, prior: AffectedSet | None = None) -> RecomputeStats:
        """Recompute a (re)indexed file, its symbols and their one-hop neighbors.

        Args:
            path: The file that changed
            prior: Entities that were connected to the file before it changed,
                so edges dropped by the update are accounted for
        """
        return self._recompute(
            AffectedSet(files=frozenset({path})),
            lambda snapshot: affected_by_file(snapshot, path),
            prior or AffectedSet(),
        )

    def refresh_files(self, paths: Iterable[Path]) -> RecomputeStats:
        stats = RecomputeStats()
        for path in paths:
            stats.merge(self.refresh_file(path))
        return stats

    def refresh_symbols(self, symbol_ids: Iterable[int]) -> RecomputeStats:
        """Recompute symbols whose edges changed, plus their neighbors and files."""
        ids = frozenset(symbol_ids)
        return self._recompute(
            AffectedSet(symbols=ids),
            lambda snapshot: affected_by_symbols(snapshot, ids),
        )

    def refresh_edges(self, endpoints: Iterable[tuple[int, int]]) -> RecomputeStats:
        """Recompute after edges were added or removed between (caller, callee) pairs."""
        pairs = list(endpoints)
        ids = frozenset(sid for pair in pairs for sid in pair)
        return self._recompute(
            AffectedSet(symbols=ids),
            lambda snapshot: affected_by_edges(snapshot, pairs),
        )

    def remove_file(self, path: Path) -> RecomputeStats:
        """Delete a file from the graph, drop its rows and refresh its former neighbors."""
        return self._recompute(
            AffectedSet(files=frozenset({path})),
            lambda snapshot: affected_by_file(snapshot, path),
            mutate=lambda: self._repo.delete_file(path),
        )

    def remove_symbol(self, symbol_id: int) -> RecomputeStats:
        """Delete a symbol from the graph, drop its row and refresh its former neighbors."""
        return self._recompute(
            AffectedSet(symbols=frozenset({symbol_id})),
            lambda snapshot: affected_by_symbols(snapshot, {symbol_id}),
            mutate=lambda: self._repo.delete_symbol(symbol_id),
        )

    @contextmanager
    def updating_file(self, path: Path) -> Iterator[RecomputeStats]:
        """Wrap an indexer's update of one file.

        The file's current neighborhood is captured and locked while the
        block runs, then everything old or new is recomputed. The yielded
        stats are filled in when the block exits. The recompute also runs
        when the block raises, so a partly applied update is still metered
        before the error propagates.

        Usage:
            with engine.updating_file(path) as stats:
                repo.edges.delete_for_file(path)
                ...
        """
        stats = RecomputeStats()
        prior: AffectedSet | None = None
        try:
            with self._holding_neighborhood(path) as prior:
                yield stats
        finally:
            # Neighborhood locks are released by now.
            if prior is not None:
                stats.merge(self.refresh_file(path, prior))

    @contextmanager
    def _holding_neighborhood(self, path: Path) -> Iterator[AffectedSet]:
        """Lock a file's one-hop neighborhood, re-reading it until the locked set covers it."""
        affected = affected_by_file(self._load(AffectedSet(files=frozenset({path}))), path)
        while True:
            with self._locks.holding(affected.lock_keys()):
                current = affected_by_file(self._load(affected), path)
                if current <= affected:
                    yield affected
                    return
            log.debug(
                "Neighborhood of %s grew from %d to %d keys", path, len(affected), len(current)
            )
            affected = affected | current

    def backfill(self, on_progress: ProgressCallback | None = None) -> RecomputeStats:
        """Recompute every file and symbol, and drop rows of entities no longer in the graph."""
        stats = RecomputeStats()
        root = self._settings.project_root
        affected = self._with_orphans(affected_by_full(load_full_snapshot(self._repo, root)))
        attempts = 0

        while True:
            with self._locks.holding(affected.lock_keys()):
                snapshot = load_full_snapshot(self._repo, root)
                current = self._with_orphans(affected_by_full(snapshot))
                if not current <= affected:
                    affected = affected | current
                    continue

                aggregate = compute_all(snapshot, snapshot.files, on_progress=on_progress)
                if self._should_retry(aggregate, attempts):
                    attempts += 1
                    stats.retries += 1
                    continue

                batch = self._build_batch(aggregate, snapshot, current, stats)
                batch.deleted_files |= current.files - set(snapshot.files)
                batch.deleted_symbols |= current.symbols - snapshot.complete_symbols
                self._repo.metrics.apply(batch)
                self._count(batch, stats)
                break

        log.info(
            "Backfilled metrics for %d files and %d symbols (%d errors)",
            stats.files_updated,
            stats.symbols_updated,
            len(stats.errors),
        )
        return stats

    def _recompute(
        self,
        seed: AffectedSet,
        derive: Derive,
        prior: AffectedSet | None = None,
        mutate: Callable[[], None] | None = None,
    ) -> RecomputeStats:
        stats = RecomputeStats()
        prior = prior or AffectedSet()
        affected = seed | prior | derive(self._load(seed))
        attempts = 0

        while True:
            with self._locks.holding(affected.lock_keys()):
                if mutate is not None:
                    before = derive(self._load(affected)) | prior
                    if not before <= affected:
                        affected = affected | before
                        continue
                    prior = before
                    mutate()
                    mutate = None

                snapshot = self._load(affected)
                current = derive(snapshot) | prior
                if not current <= affected:
                    log.debug("Affected set grew from %d to %d keys", len(affected), len(current))
                    affected = affected | current
                    continue

                aggregate = compute_all(snapshot, affected.files, affected.symbols)
                if self._should_retry(aggregate, attempts):
                    attempts += 1
                    stats.retries += 1
                    continue

                batch = self._build_batch(aggregate, snapshot, affected, stats)
                self._repo.metrics.apply(batch)
                self._count(batch, stats)
                log.debug(
                    "Recomputed %d keys from snapshot %d", len(affected), snapshot.snapshot_id
                )
                return stats

    def _load(self, affected: AffectedSet) -> GraphSnapshot:
        return load_snapshot(
            self._repo, affected.files, affected.symbols, root=self._settings.project_root
        )

    def _with_orphans(self, affected: AffectedSet) -> AffectedSet:
        """Add keys of stored rows whose entities are no longer in the graph."""
        stored_files = {row.file_path for row in self._repo.metrics.list_file_metrics()}
        stored_symbols = {row.symbol_id for row in self._repo.metrics.list_symbol_metrics()}
        return affected | AffectedSet(frozenset(stored_files), frozenset(stored_symbols))

    def _should_retry(self, aggregate: Aggregate, attempts: int) -> bool:
        failures = [*aggregate.file_failures.values(), *aggregate.symbol_failures.values()]
        if not any(isinstance(e, InconsistentSnapshotError) for e in failures):
            return False
        if attempts >= self._settings.max_snapshot_retries:
            return False
        log.info(
            "Discarding snapshot %d (inconsistent), retry %d of %d",
            aggregate.snapshot_id,
            attempts + 1,
            self._settings.max_snapshot_retries,
        )
        return True

    def _build_batch(
        self,
        aggregate: Aggregate,
        snapshot: GraphSnapshot,
        affected: AffectedSet,
        stats: RecomputeStats,
    ) -> MetricsBatch:
        batch = MetricsBatch(file_rows=aggregate.files, symbol_rows=aggregate.symbols)

        for path, file_error in aggregate.file_failures.items():
            if isinstance(file_error, EntityNotFoundError):
                batch.deleted_files.add(path)
            else:
                log.warning("Keeping previous metrics for %s: %s", path, file_error)
                stats.errors.append((str(path), str(file_error)))

        for symbol_id, symbol_error in aggregate.symbol_failures.items():
            if isinstance(symbol_error, EntityNotFoundError):
                batch.deleted_symbols.add(symbol_id)
            else:
                log.warning("Keeping previous metrics for symbol %d: %s", symbol_id, symbol_error)
                stats.errors.append((str(symbol_id), str(symbol_error)))

        # Rows of symbols that were replaced when their file was reindexed.
        for path in affected.files:
            if not snapshot.covers_file(path):
                continue
            live = {s.id for s in snapshot.symbols_in_file(path)}
            batch.deleted_symbols |= self._repo.metrics.symbol_ids_in_file(path) - live

        return batch

    @staticmethod
    def _count(batch: MetricsBatch, stats: RecomputeStats) -> None:
        stats.files_updated += len(batch.file_rows)
        stats.symbols_updated += len(batch.symbol_rows)
        stats.files_deleted += len(batch.deleted_files)
        stats.symbols_deleted += len(batch.deleted_symbols)
