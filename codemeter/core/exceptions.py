"""Codemeter custom exceptions."""


class CodemeterError(Exception):
    """Base exception for Codemeter errors."""


class EntityNotFoundError(CodemeterError):
    """File or symbol is absent from the graph."""


class GraphQueryFailedError(CodemeterError):
    """The graph store could not answer an entity or edge query.

    Treated as transient: callers may retry the whole operation.
    """


class InconsistentSnapshotError(CodemeterError):
    """A computation mixed data from two different graph snapshots."""


class MetricsStoreError(CodemeterError):
    """Metrics rows could not be written; the batch was rolled back."""
