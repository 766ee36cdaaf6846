"""Tests for the DuckDB vector store."""

from unittest.mock import Mock

import duckdb
import pytest
import pytest_asyncio

from core.exceptions import DatabaseError, ValidationError
from core.models import TextChunk
from filelens.metrics import MetricOperation, MetricsRecorder
from providers.database.duckdb_store import DB_FILENAME, DuckDBVectorStore, escape_like

from .conftest import TEST_DIMENSIONS, unit_vector


def make_chunks(*texts: str) -> list[TextChunk]:
    chunks = []
    offset = 0
    for index, text in enumerate(texts):
        chunks.append(TextChunk(text=text, start_char=offset, end_char=offset + len(text), chunk_index=index))
        offset += len(text)
    return chunks


class TestDuckDBVectorStore:
    """Upsert, delete, search and stats on a real on-disk store."""

    @pytest_asyncio.fixture
    async def store(self, temp_dir):
        store = DuckDBVectorStore(dimensions=TEST_DIMENSIONS)
        await store.initialize(temp_dir / "vectordb")
        yield store
        await store.close()

    @pytest.mark.asyncio
    async def test_empty_store(self, store):
        stats = await store.get_stats()

        assert stats.total_files == 0
        assert stats.total_chunks == 0
        assert stats.total_tokens == 0
        assert stats.last_indexed is None
        assert await store.search(unit_vector(0), top_k=5) == []
        assert await store.list_files() == []

    @pytest.mark.asyncio
    async def test_add_and_search(self, store):
        await store.add_chunks(make_chunks("alpha", "beta"), [unit_vector(0), unit_vector(1)], "/docs/a.txt")
        await store.add_chunks(make_chunks("gamma"), [unit_vector(2)], "/docs/b.txt")

        hits = await store.search(unit_vector(1), top_k=2)

        assert len(hits) == 2
        assert hits[0].chunk_text == "beta"
        assert hits[0].file_path == "/docs/a.txt"
        assert hits[0].record.chunk_index == 1
        assert hits[0].record.id == "/docs/a.txt:1"
        assert hits[0].score == pytest.approx(1.0)
        assert hits[0].score >= hits[1].score

    @pytest.mark.asyncio
    async def test_stats(self, store):
        await store.add_chunks(make_chunks("a" * 8, "b" * 5), [unit_vector(0), unit_vector(1)], "/x/one.txt")
        await store.add_chunks(make_chunks("c" * 4), [unit_vector(2)], "/x/two.txt")

        stats = await store.get_stats()

        assert stats.total_files == 2
        assert stats.total_chunks == 3
        assert stats.total_tokens == 2 + 2 + 1
        assert stats.index_size_bytes > 0
        assert stats.last_indexed is not None

    @pytest.mark.asyncio
    async def test_reindex_overwrites_by_id(self, store):
        await store.add_chunks(make_chunks("old zero", "old one"), [unit_vector(0), unit_vector(1)], "/f.txt")
        await store.add_chunks(make_chunks("new zero", "new one"), [unit_vector(0), unit_vector(1)], "/f.txt")

        stats = await store.get_stats()
        hits = await store.search(unit_vector(0), top_k=10)

        assert stats.total_chunks == 2
        assert {hit.chunk_text for hit in hits} == {"new zero", "new one"}

    @pytest.mark.asyncio
    async def test_length_mismatch_leaves_store_unchanged(self, store):
        await store.add_chunks(make_chunks("keep"), [unit_vector(0)], "/keep.txt")

        with pytest.raises(ValidationError, match="length mismatch: 2 vs 1"):
            await store.add_chunks(make_chunks("x", "y"), [unit_vector(0)], "/bad.txt")

        assert await store.list_files() == ["/keep.txt"]
        assert (await store.get_stats()).total_chunks == 1

    @pytest.mark.asyncio
    async def test_wrong_dimensions_rejected(self, store):
        with pytest.raises(ValidationError):
            await store.add_chunks(make_chunks("x"), [[1.0, 0.0]], "/bad.txt")
        with pytest.raises(ValidationError):
            await store.search([1.0, 0.0], top_k=3)

    @pytest.mark.asyncio
    async def test_empty_add_is_noop(self, store):
        assert await store.add_chunks([], [], "/nothing.txt") == 0
        assert (await store.get_stats()).total_chunks == 0

    @pytest.mark.asyncio
    async def test_delete_file_is_exact_match(self, store):
        await store.add_chunks(make_chunks("a"), [unit_vector(0)], "/docs/a.txt")
        await store.add_chunks(make_chunks("b"), [unit_vector(1)], "/docs/a.txt.bak")

        removed = await store.delete_file("/docs/a.txt")

        assert removed == 1
        assert await store.list_files() == ["/docs/a.txt.bak"]
        assert await store.delete_file("/docs/missing.txt") == 0

    @pytest.mark.asyncio
    async def test_prune_file_removes_tail(self, store):
        await store.add_chunks(make_chunks("0", "1", "2", "3"), [unit_vector(i) for i in range(4)], "/p.txt")

        pruned = await store.prune_file("/p.txt", 2)

        assert pruned == 2
        hits = await store.search(unit_vector(0), top_k=10)
        assert sorted(hit.record.chunk_index for hit in hits) == [0, 1]

    @pytest.mark.asyncio
    async def test_path_prefix_filter(self, store):
        await store.add_chunks(make_chunks("in"), [unit_vector(0)], "/proj/src/a.py")
        await store.add_chunks(make_chunks("out"), [unit_vector(0)], "/proj/docs/b.md")

        hits = await store.search(unit_vector(0), top_k=10, path_prefix="/proj/src")

        assert [hit.file_path for hit in hits] == ["/proj/src/a.py"]

    @pytest.mark.asyncio
    async def test_path_prefix_wildcards_are_literal(self, store):
        await store.add_chunks(make_chunks("literal"), [unit_vector(0)], "/data/my_dir/a.txt")
        await store.add_chunks(make_chunks("wildcard"), [unit_vector(0)], "/data/myXdir/b.txt")
        await store.add_chunks(make_chunks("percent"), [unit_vector(0)], "/data/100%/c.txt")

        underscore = await store.search(unit_vector(0), top_k=10, path_prefix="/data/my_dir")
        percent = await store.search(unit_vector(0), top_k=10, path_prefix="/data/100%")

        assert [hit.file_path for hit in underscore] == ["/data/my_dir/a.txt"]
        assert [hit.file_path for hit in percent] == ["/data/100%/c.txt"]

    @pytest.mark.asyncio
    async def test_top_k_limits_and_zero_query(self, store):
        await store.add_chunks(make_chunks("a", "b", "c"), [unit_vector(i) for i in range(3)], "/k.txt")

        assert len(await store.search(unit_vector(0), top_k=2)) == 2
        assert await store.search(unit_vector(0), top_k=0) == []
        assert await store.search([0.0] * TEST_DIMENSIONS, top_k=5) == []

    @pytest.mark.asyncio
    async def test_clear(self, store):
        await store.add_chunks(make_chunks("a"), [unit_vector(0)], "/c.txt")

        await store.clear()

        assert (await store.get_stats()).total_chunks == 0
        await store.add_chunks(make_chunks("again"), [unit_vector(0)], "/c.txt")
        assert (await store.get_stats()).total_chunks == 1

    @pytest.mark.asyncio
    async def test_persists_across_reopen(self, temp_dir):
        location = temp_dir / "persist"
        first = DuckDBVectorStore(dimensions=TEST_DIMENSIONS)
        await first.initialize(location)
        await first.add_chunks(make_chunks("durable"), [unit_vector(3)], "/d.txt")
        await first.close()

        second = DuckDBVectorStore(dimensions=TEST_DIMENSIONS)
        await second.initialize(location)
        try:
            hits = await second.search(unit_vector(3), top_k=1)
            assert hits[0].chunk_text == "durable"
            assert (location / DB_FILENAME).exists()
        finally:
            await second.close()

    @pytest.mark.asyncio
    async def test_initialize_same_location_is_noop(self, store, temp_dir):
        connection = store.connection
        await store.initialize(temp_dir / "vectordb")
        assert store.connection is connection

    @pytest.mark.asyncio
    async def test_metrics(self, temp_dir):
        metrics = MetricsRecorder()
        store = DuckDBVectorStore(dimensions=TEST_DIMENSIONS, metrics=metrics)
        await store.initialize(temp_dir / "metrics")
        try:
            await store.add_chunks(make_chunks("m"), [unit_vector(0)], "/m.txt")
            await store.search(unit_vector(0), top_k=1)
        finally:
            await store.close()

        assert metrics.get_stats(MetricOperation.VECTOR_ADD).count == 1
        assert metrics.get_stats(MetricOperation.VECTOR_SEARCH).count == 1

    @pytest.mark.asyncio
    async def test_operations_require_initialize(self):
        store = DuckDBVectorStore(dimensions=TEST_DIMENSIONS)
        with pytest.raises(DatabaseError, match="not initialized"):
            await store.get_stats()

    @pytest.mark.asyncio
    async def test_missing_table_reads_as_empty(self, store):
        store.connection.execute("DROP TABLE file_chunks")

        assert await store.list_files() == []
        assert (await store.get_stats()).total_chunks == 0
        assert await store.search(unit_vector(0), top_k=3) == []

    @pytest.mark.asyncio
    async def test_other_engine_errors_are_wrapped(self, store):
        connection = store.connection
        broken = Mock()
        broken.execute.side_effect = duckdb.IOException("IO Error: file not found")
        store.connection = broken
        try:
            with pytest.raises(DatabaseError, match="file not found"):
                await store.list_files()
            with pytest.raises(DatabaseError, match="operation=get_stats"):
                await store.get_stats()
        finally:
            store.connection = connection


def test_escape_like():
    assert escape_like("a_b%c\\d") == "a\\_b\\%c\\\\d"
