"""
Graph snapshots read by the metrics engine.

Data Structures:
    - GraphSnapshot: Adjacency list view of symbols, edges and file contents
      captured from a single consistent read of the store

Loading:
    - load_snapshot(): Load only the files/symbols being metered plus their
      one-hop neighborhood
    - load_full_snapshot(): Load the full graph for a complete recompute
"""

from codemeter.core.graph.base import GraphSnapshot
from codemeter.core.graph.loader import load_full_snapshot, load_snapshot

__all__ = [
    "GraphSnapshot",
    "load_full_snapshot",
    "load_snapshot",
]
