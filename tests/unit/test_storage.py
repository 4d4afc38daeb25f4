"""Unit tests for the graph and metrics storage."""

import tempfile
from pathlib import Path

import pytest

from codemeter.core.models import EdgeType, FileMetrics, MetricsBatch, SymbolMetrics, SymbolType
from codemeter.core.storage import (
    GraphRepository,
    compute_content_hash,
    compute_file_hash,
    get_default_db_path,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as td:
        yield Path(td)


@pytest.fixture
def repository(temp_dir: Path):
    """Create a repository for testing."""
    repo = GraphRepository(get_default_db_path(temp_dir))
    yield repo
    repo.close()


def file_row(path: str, loc: int, fan_in: int = 0, fan_out: int = 0) -> FileMetrics:
    return FileMetrics(
        file_path=Path(path),
        symbol_count=1,
        loc=loc,
        estimated_loc=loc / 2,
        fan_in=fan_in,
        fan_out=fan_out,
        last_updated=100,
    )


def symbol_row(symbol_id: int, path: str) -> SymbolMetrics:
    return SymbolMetrics(
        symbol_id=symbol_id,
        symbol_name=f"s{symbol_id}",
        kind="method",
        file_path=Path(path),
        loc=3,
        estimated_loc=1.5,
        fan_in=1,
        fan_out=2,
        last_updated=100,
    )


class TestGraphStorage:
    """Tests for symbols, edges and files tables."""

    def test_symbol_spans_round_trip(self, repository: GraphRepository) -> None:
        sid = repository.symbols.insert(
            "run",
            "app::run",
            Path("src/app.rs"),
            3,
            SymbolType.METHOD,
            end_line=9,
            byte_start=20,
            byte_end=180,
        )

        symbol = repository.symbols.get_by_id(sid)

        assert symbol.file == Path("src/app.rs")
        assert (symbol.line, symbol.end_line) == (3, 9)
        assert (symbol.byte_start, symbol.byte_end) == (20, 180)
        assert symbol.type is SymbolType.METHOD

    def test_edges_by_direction(self, repository: GraphRepository) -> None:
        a = repository.symbols.insert("a", "m::a", Path("m.rs"), 1, SymbolType.FUNCTION)
        b = repository.symbols.insert("b", "m::b", Path("m.rs"), 5, SymbolType.FUNCTION)
        edge_id = repository.edges.insert(a, b, 2, EdgeType.IMPORT)

        assert [e.id for e in repository.edges.get_outgoing(a)] == [edge_id]
        assert [e.id for e in repository.edges.get_incoming(b)] == [edge_id]
        assert repository.edges.get_outgoing(b) == []
        assert repository.edges.get_incoming(b)[0].call_type is EdgeType.IMPORT

    def test_touching_edges(self, repository: GraphRepository) -> None:
        a = repository.symbols.insert("a", "m::a", Path("m.rs"), 1, SymbolType.FUNCTION)
        b = repository.symbols.insert("b", "m::b", Path("m.rs"), 5, SymbolType.FUNCTION)
        c = repository.symbols.insert("c", "n::c", Path("n.rs"), 1, SymbolType.FUNCTION)
        repository.edges.insert(a, b)
        repository.edges.insert(c, a)
        repository.edges.insert(b, c)

        assert len(repository.edges.get_touching([a])) == 2
        assert len(repository.edges.get_touching([a, b, c])) == 3
        assert repository.edges.get_touching([]) == []

    def test_delete_edge(self, repository: GraphRepository) -> None:
        a = repository.symbols.insert("a", "m::a", Path("m.rs"), 1, SymbolType.FUNCTION)
        edge_id = repository.edges.insert(a, a)

        assert repository.edges.delete(edge_id) is True
        assert repository.edges.delete(edge_id) is False

    def test_delete_file_removes_symbols_and_edges(self, repository: GraphRepository) -> None:
        a = repository.symbols.insert("a", "m::a", Path("m.rs"), 1, SymbolType.FUNCTION)
        c = repository.symbols.insert("c", "n::c", Path("n.rs"), 1, SymbolType.FUNCTION)
        repository.edges.insert(c, a)
        repository.files.upsert(Path("m.rs"), "abc")

        repository.delete_file(Path("m.rs"))

        assert repository.symbols.get_in_file(Path("m.rs")) == []
        assert repository.edges.get_outgoing(c) == []
        assert repository.files.get(Path("m.rs")) is None

    def test_file_hashes(self, temp_dir: Path, repository: GraphRepository) -> None:
        path = temp_dir / "lib.rs"
        path.write_bytes(b"fn main() {}\n")
        repository.files.upsert(path, compute_file_hash(path))

        record = repository.files.get(path)

        assert record is not None
        assert record.hash == compute_content_hash(b"fn main() {}\n")
        assert repository.files.get_hashes([path, temp_dir / "other.rs"]) == {path: record.hash}

    def test_upsert_replaces_hash(self, repository: GraphRepository) -> None:
        repository.files.upsert(Path("a.rs"), "old")
        repository.files.upsert(Path("a.rs"), "new")

        record = repository.files.get(Path("a.rs"))
        assert record is not None and record.hash == "new"


class TestMetricsStorage:
    """Tests for the metrics tables."""

    def test_upsert_replaces_whole_row(self, repository: GraphRepository) -> None:
        repository.metrics.upsert_file_metrics(file_row("a.rs", 10, fan_in=4))
        repository.metrics.upsert_file_metrics(file_row("a.rs", 20))

        row = repository.metrics.get_file_metrics(Path("a.rs"))

        assert row is not None
        assert (row.loc, row.fan_in) == (20, 0)
        assert repository.metrics.counts() == (1, 0)

    def test_symbol_row_round_trip(self, repository: GraphRepository) -> None:
        repository.metrics.upsert_symbol_metrics(symbol_row(7, "a.rs"))

        assert repository.metrics.get_symbol_metrics(7) == symbol_row(7, "a.rs")

    def test_score_derived_on_read(self, repository: GraphRepository) -> None:
        """The stored score column never overrides the row's own fields."""
        repository.metrics.upsert_file_metrics(file_row("a.rs", 10, fan_in=2, fan_out=1))
        conn = repository._get_connection()
        conn.execute("UPDATE file_metrics SET complexity_score = 999")
        conn.commit()

        row = repository.metrics.get_file_metrics(Path("a.rs"))
        assert row is not None
        assert row.complexity_score == pytest.approx(2.3)

    def test_list_by_prefix(self, repository: GraphRepository) -> None:
        for path in ("src/a.rs", "src/b.rs", "tests/c.rs"):
            repository.metrics.upsert_file_metrics(file_row(path, 5))

        rows = repository.metrics.list_file_metrics(prefix="src/")

        assert [str(r.file_path) for r in rows] == ["src/a.rs", "src/b.rs"]
        assert len(repository.metrics.list_file_metrics()) == 3

    def test_list_symbols_by_file(self, repository: GraphRepository) -> None:
        rows = [symbol_row(2, "a.rs"), symbol_row(1, "a.rs"), symbol_row(3, "b.rs")]
        repository.metrics.apply(MetricsBatch(symbol_rows=rows))

        in_a = repository.metrics.list_symbol_metrics(Path("a.rs"))
        assert [r.symbol_id for r in in_a] == [1, 2]
        assert repository.metrics.symbol_ids_in_file(Path("b.rs")) == {3}

    def test_batch_deletes_before_upserts(self, repository: GraphRepository) -> None:
        repository.metrics.upsert_file_metrics(file_row("a.rs", 5))
        repository.metrics.upsert_symbol_metrics(symbol_row(1, "a.rs"))

        repository.metrics.apply(
            MetricsBatch(
                file_rows=[file_row("a.rs", 8)],
                symbol_rows=[symbol_row(1, "a.rs")],
                deleted_files={Path("a.rs")},
            )
        )

        row = repository.metrics.get_file_metrics(Path("a.rs"))
        assert row is not None and row.loc == 8
        assert repository.metrics.get_symbol_metrics(1) is not None

    def test_hotspot_thresholds(self, repository: GraphRepository) -> None:
        repository.metrics.upsert_file_metrics(file_row("big.rs", 500))
        repository.metrics.upsert_file_metrics(file_row("hub.rs", 50, fan_in=30))
        repository.metrics.upsert_file_metrics(file_row("leaf.rs", 10, fan_out=3))

        ranked = repository.metrics.get_hotspots()
        assert [str(r.file_path) for r in ranked] == ["big.rs", "hub.rs", "leaf.rs"]

        assert [str(r.file_path) for r in repository.metrics.get_hotspots(limit=1)] == ["big.rs"]
        hubs = repository.metrics.get_hotspots(min_fan_in=10)
        assert [str(r.file_path) for r in hubs] == ["hub.rs"]
        assert repository.metrics.get_hotspots(min_loc=100, min_fan_out=1) == []


class TestRepository:
    """Tests for the repository facade."""

    def test_stats(self, repository: GraphRepository) -> None:
        a = repository.symbols.insert("a", "m::a", Path("m.rs"), 1, SymbolType.FUNCTION)
        repository.symbols.insert("b", "n::b", Path("n.rs"), 1, SymbolType.FUNCTION)
        repository.edges.insert(a, a)
        repository.files.upsert(Path("m.rs"), "h")
        repository.metrics.upsert_file_metrics(file_row("m.rs", 3))

        stats = repository.get_stats()

        assert stats["files"] == 2
        assert stats["symbols"] == 2
        assert stats["edges"] == 1
        assert stats["file_metrics"] == 1
        assert stats["symbol_metrics"] == 0
        assert stats["last_indexed"] is not None

    def test_clear(self, repository: GraphRepository) -> None:
        repository.symbols.insert("a", "m::a", Path("m.rs"), 1, SymbolType.FUNCTION)
        repository.metrics.upsert_symbol_metrics(symbol_row(1, "m.rs"))

        repository.clear()

        stats = repository.get_stats()
        assert (stats["symbols"], stats["symbol_metrics"]) == (0, 0)

    def test_read_transaction_releases(self, repository: GraphRepository) -> None:
        with repository.read_transaction() as conn:
            assert conn.in_transaction
        repository.symbols.insert("a", "m::a", Path("m.rs"), 1, SymbolType.FUNCTION)
        assert len(repository.symbols.get_all()) == 1

    def test_default_db_path(self, temp_dir: Path) -> None:
        assert get_default_db_path(temp_dir) == temp_dir / ".codemeter" / "index.db"
