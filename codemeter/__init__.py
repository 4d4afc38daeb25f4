"""
Codemeter: precomputed size and coupling metrics for a code graph.

Codemeter keeps file- and symbol-level metrics in step with an indexed code
graph so debugging tools can answer questions in constant time:
- Lines of code (exact and estimated) per file and symbol
- Fan-in / fan-out per file (cross-file) and per symbol
- A weighted complexity score to rank hotspots

Usage:
    from codemeter.core import GraphRepository, get_default_db_path
    from codemeter.core.metrics import MetricsEngine

    db_path = get_default_db_path(Path("."))
    with GraphRepository(db_path) as repo:
        engine = MetricsEngine(repo)
        engine.backfill()
"""

__version__ = "0.1.0"
