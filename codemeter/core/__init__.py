"""
Core module: data models, exceptions, storage, graph snapshots and metrics.

Models (models.py):
    - Symbol: A function, class, method, variable or type in the codebase
    - Edge: A directed relationship between two symbols
    - SymbolType/EdgeType: Enums for categorization
    - FileMetrics/SymbolMetrics: Precomputed rows read by debugging tools

Exceptions (exceptions.py):
    - CodemeterError: Base exception for all codemeter errors
    - EntityNotFoundError: Requested file or symbol doesn't exist
    - GraphQueryFailedError: The graph store could not answer a query
    - InconsistentSnapshotError: A computation mixed two graph snapshots
    - MetricsStoreError: A metrics batch could not be written

Storage (storage/):
    - GraphRepository: Facade for all database operations
    - Uses SQLite for persistence in .codemeter/index.db

Metrics (metrics/):
    - MetricsEngine: Incremental recomputation driven by indexing events
"""

from codemeter.core.exceptions import (
    CodemeterError,
    EntityNotFoundError,
    GraphQueryFailedError,
    InconsistentSnapshotError,
    MetricsStoreError,
)
from codemeter.core.models import (
    ComplexitySource,
    Edge,
    EdgeType,
    FileMetrics,
    FileRecord,
    MetricsBatch,
    RecomputeStats,
    Symbol,
    SymbolMetrics,
    SymbolType,
)
from codemeter.core.storage import (
    GraphRepository,
    compute_file_hash,
    get_default_db_path,
)

__all__ = [
    # Models
    "Symbol",
    "Edge",
    "FileRecord",
    "SymbolType",
    "EdgeType",
    "FileMetrics",
    "SymbolMetrics",
    "ComplexitySource",
    "MetricsBatch",
    "RecomputeStats",
    # Exceptions
    "CodemeterError",
    "EntityNotFoundError",
    "GraphQueryFailedError",
    "InconsistentSnapshotError",
    "MetricsStoreError",
    # Storage
    "GraphRepository",
    "compute_file_hash",
    "get_default_db_path",
]
