"""
Metrics maintenance: keeps precomputed size and coupling metrics in step with the graph.

Components:
    - aggregator: Pure computation of FileMetrics/SymbolMetrics from a snapshot
    - invalidation: Which files/symbols an indexing event affects (one hop)
    - locks: Per-entity locks so overlapping recomputations never race
    - engine: MetricsEngine, the coordinator used by indexers and tools

Usage:
    with GraphRepository(db_path) as repo:
        engine = MetricsEngine(repo)
        engine.refresh_file(Path("src/app.py"))
        repo.metrics.get_file_metrics(Path("src/app.py"))
"""

from codemeter.core.metrics.aggregator import (
    Aggregate,
    compute_all,
    compute_file_metrics,
    compute_symbol_metrics,
)
from codemeter.core.metrics.engine import MetricsEngine
from codemeter.core.metrics.invalidation import (
    AffectedSet,
    affected_by_edges,
    affected_by_file,
    affected_by_full,
    affected_by_symbols,
)

__all__ = [
    "Aggregate",
    "AffectedSet",
    "MetricsEngine",
    "affected_by_edges",
    "affected_by_file",
    "affected_by_full",
    "affected_by_symbols",
    "compute_all",
    "compute_file_metrics",
    "compute_symbol_metrics",
]
