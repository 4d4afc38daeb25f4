"""Unit tests for affected-set derivation and keyed locks."""

import threading
import time
from pathlib import Path

import pytest

from codemeter.core.graph import GraphSnapshot
from codemeter.core.metrics.invalidation import (
    AffectedSet,
    affected_by_edges,
    affected_by_file,
    affected_by_full,
    affected_by_symbols,
)
from codemeter.core.metrics.locks import KeyedLocks
from codemeter.core.models import Edge, EdgeType, Symbol, SymbolType

A = Path("a.rs")
B = Path("b.rs")
C = Path("c.rs")
D = Path("d.rs")


def make_symbol(id: int, name: str, file: Path) -> Symbol:
    """Create a test symbol."""
    return Symbol(
        id=id,
        name=name,
        qualified_name=f"{file.stem}::{name}",
        file=file,
        line=1,
        end_line=2,
        type=SymbolType.FUNCTION,
    )


@pytest.fixture
def chain() -> GraphSnapshot:
    """b.rs::bar -> a.rs::foo -> c.rs::baz -> d.rs::qux."""
    snapshot = GraphSnapshot()
    snapshot.add_symbol(make_symbol(1, "foo", A))
    snapshot.add_symbol(make_symbol(2, "bar", B))
    snapshot.add_symbol(make_symbol(3, "baz", C))
    snapshot.add_symbol(make_symbol(4, "qux", D))
    for i, (caller, callee) in enumerate([(2, 1), (1, 3), (3, 4)], start=1):
        snapshot.add_edge(Edge(i, caller, callee, 1, EdgeType.CALL))
    snapshot.add_file(A, [1], b"")
    return snapshot


class TestAffectedSet:
    """Tests for AffectedSet operations."""

    def test_union(self) -> None:
        left = AffectedSet(frozenset({A}), frozenset({1}))
        right = AffectedSet(frozenset({B}), frozenset({1, 2}))

        merged = left | right

        assert merged.files == {A, B}
        assert merged.symbols == {1, 2}
        assert len(merged) == 4

    def test_subset(self) -> None:
        small = AffectedSet(frozenset({A}), frozenset({1}))
        big = AffectedSet(frozenset({A, B}), frozenset({1, 2}))

        assert small <= big
        assert not big <= small

    def test_empty_is_falsy(self) -> None:
        assert not AffectedSet()
        assert AffectedSet(symbols=frozenset({5}))

    def test_lock_keys_sorted(self) -> None:
        affected = AffectedSet(frozenset({B, A}), frozenset({10, 9}))

        assert affected.lock_keys() == [
            ("file", "a.rs"),
            ("file", "b.rs"),
            ("symbol", f"{9:020d}"),
            ("symbol", f"{10:020d}"),
        ]

    def test_lock_keys_numeric_order(self) -> None:
        """Symbol 9 sorts before symbol 10, not after it."""
        keys = AffectedSet(symbols=frozenset({10, 9, 100})).lock_keys()
        assert [int(k[1]) for k in keys] == [9, 10, 100]


class TestDerivation:
    """Tests for deriving the affected set from a snapshot."""

    def test_by_file_is_one_hop(self, chain: GraphSnapshot) -> None:
        """Changing a.rs reaches bar and baz but not qux."""
        affected = affected_by_file(chain, A)

        assert affected.files == {A, B, C}
        assert affected.symbols == {1, 2, 3}

    def test_by_symbols(self, chain: GraphSnapshot) -> None:
        affected = affected_by_symbols(chain, [3])

        assert affected.symbols == {1, 3, 4}
        assert affected.files == {A, C, D}

    def test_by_symbols_keeps_unknown_ids(self, chain: GraphSnapshot) -> None:
        affected = affected_by_symbols(chain, [99])

        assert affected.symbols == {99}
        assert affected.files == frozenset()

    def test_by_edges_only_endpoints(self, chain: GraphSnapshot) -> None:
        """A new edge foo -> qux changes foo and qux only, not their other neighbors."""
        affected = affected_by_edges(chain, [(1, 4)])

        assert affected.symbols == {1, 4}
        assert affected.files == {A, D}

    def test_full(self, chain: GraphSnapshot) -> None:
        affected = affected_by_full(chain)

        assert affected.files == {A}
        assert affected.symbols == {1, 2, 3, 4}


class TestKeyedLocks:
    """Tests for per-key locking."""

    def test_locks_released_after_use(self) -> None:
        locks = KeyedLocks()
        with locks.holding([("file", "a.rs"), ("symbol", "1")]):
            assert len(locks) == 2
        assert len(locks) == 0

    def test_reentrant(self) -> None:
        locks = KeyedLocks()
        with locks.holding([("file", "a.rs")]):
            with locks.holding([("file", "a.rs"), ("file", "b.rs")]):
                assert len(locks) == 2
        assert len(locks) == 0

    def test_released_on_error(self) -> None:
        locks = KeyedLocks()
        with pytest.raises(RuntimeError):
            with locks.holding([("file", "a.rs")]):
                raise RuntimeError("boom")
        assert len(locks) == 0

    def test_shared_key_serializes(self) -> None:
        locks = KeyedLocks()
        inside = 0
        overlap = False
        guard = threading.Lock()

        def work(keys: list[tuple[str, str]]) -> None:
            nonlocal inside, overlap
            with locks.holding(keys):
                with guard:
                    inside += 1
                    overlap = overlap or inside > 1
                time.sleep(0.01)
                with guard:
                    inside -= 1

        threads = [
            threading.Thread(target=work, args=([("file", "a.rs"), ("file", f"{i}.rs")],))
            for i in range(8)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not overlap
        assert len(locks) == 0

    def test_opposite_order_does_not_deadlock(self) -> None:
        locks = KeyedLocks()
        first: list[tuple[str, str]] = [("file", "a.rs"), ("file", "b.rs")]
        second = list(reversed(first))

        def work(keys: list[tuple[str, str]]) -> None:
            for _ in range(50):
                with locks.holding(keys):
                    pass

        threads = [threading.Thread(target=work, args=(k,)) for k in (first, second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert not any(t.is_alive() for t in threads)
