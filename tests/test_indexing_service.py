"""Integration tests for the indexing pipeline: extract, chunk, embed, store."""

from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

from filelens.chunker import Chunker
from filelens.extractor import ContentExtractor
from filelens.metrics import MetricOperation, MetricsRecorder
from providers.database.duckdb_store import DuckDBVectorStore
from providers.embeddings.local_engine import LocalEmbeddingEngine
from services.indexing_service import IndexingService, normalize_path
from services.retrieval_service import RetrievalService

from .conftest import TEST_DIMENSIONS, FakeEmbeddingModel, create_test_file


def letters(count: int) -> str:
    return "".join(chr(ord("a") + i % 26) for i in range(count))


@pytest_asyncio.fixture
async def env(temp_dir):
    """A service wired to a real store and an in-process fake model."""
    model = FakeEmbeddingModel()
    metrics = MetricsRecorder()
    store = DuckDBVectorStore(dimensions=TEST_DIMENSIONS)
    await store.initialize(temp_dir / "vectordb")
    embedder = LocalEmbeddingEngine(lambda: model, TEST_DIMENSIONS, batch_pause=0)
    service = IndexingService(
        vector_store=store,
        embedding_provider=embedder,
        extractor=ContentExtractor(),
        chunker=Chunker(),
        concurrency=2,
        metrics=metrics,
    )
    files = temp_dir / "files"
    files.mkdir()
    yield SimpleNamespace(model=model, metrics=metrics, store=store, embedder=embedder, service=service, files=files)
    await embedder.shutdown()
    await store.close()


class TestIndexingService:
    """Indexing files into a real store with an in-process fake model."""

    @pytest.mark.asyncio
    async def test_long_file_produces_three_chunks(self, env):
        path = create_test_file(env.files, "long.txt", letters(5000))

        result = await env.service.index_file(path)

        assert result.success
        assert result.file_path == normalize_path(path)
        assert result.chunks_created == 3
        assert result.total_tokens == 500 + 500 + 350
        assert result.indexed_at is not None
        assert len(env.model.encoded) == 3
        stats = await env.store.get_stats()
        assert stats.total_files == 1
        assert stats.total_chunks == 3

    @pytest.mark.asyncio
    async def test_binary_file_indexes_one_metadata_chunk(self, env):
        path = create_test_file(env.files, "blob.txt", b"\x00\x01\x02\x03" * 50)

        result = await env.service.index_file(path)

        assert result.success
        assert result.chunks_created == 1
        assert env.model.encoded[0].startswith("File: blob.txt")

    @pytest.mark.asyncio
    async def test_unsupported_file_indexes_metadata(self, env):
        path = create_test_file(env.files, "song.mp3", b"ID3\x03\x00")

        result = await env.service.index_file(path)

        assert result.success
        assert result.chunks_created == 1
        assert "Unsupported file type" in env.model.encoded[0]

    @pytest.mark.asyncio
    async def test_reindex_with_fewer_chunks_prunes_tail(self, env):
        path = create_test_file(env.files, "shrinking.txt", letters(5000))
        await env.service.index_file(path)

        path.write_text("now a short note", encoding="utf-8")
        result = await env.service.index_file(path)

        assert result.chunks_created == 1
        stats = await env.store.get_stats()
        assert stats.total_chunks == 1
        hits = await env.store.search(env.model.encode("now a short note"), top_k=10)
        assert [hit.chunk_text for hit in hits] == ["now a short note"]

    @pytest.mark.asyncio
    async def test_emptied_file_removes_records(self, env):
        path = create_test_file(env.files, "notes.md", "some notes")
        await env.service.index_file(path)

        path.write_text("   \n", encoding="utf-8")
        result = await env.service.index_file(path)

        assert result.success
        assert result.chunks_created == 0
        assert (await env.store.get_stats()).total_chunks == 0

    @pytest.mark.asyncio
    async def test_missing_file_is_a_failure_result(self, env):
        result = await env.service.index_file(env.files / "ghost.txt")

        assert not result.success
        assert result.error == "File not found"
        assert env.metrics.get_counter("files_failed") == 1

    @pytest.mark.asyncio
    async def test_one_bad_file_does_not_fail_the_batch(self, env):
        good = create_test_file(env.files, "good.txt", "good content")
        other = create_test_file(env.files, "other.md", "other content")
        missing = env.files / "missing.txt"
        completed = []

        results = await env.service.index_files(
            [good, missing, other],
            on_file_done=lambda result, done, total: completed.append((done, total)),
        )

        assert [r.success for r in results] == [True, False, True]
        assert [r.file_path for r in results] == [normalize_path(p) for p in (good, missing, other)]
        assert sorted(completed) == [(1, 3), (2, 3), (3, 3)]
        assert env.metrics.get_counter("files_indexed") == 2
        assert env.metrics.get_stats(MetricOperation.INDEX_FILE).count == 3

    @pytest.mark.asyncio
    async def test_embedding_failure_is_reported(self, env):
        broken = LocalEmbeddingEngine(lambda: FakeEmbeddingModel(fail_load=True), TEST_DIMENSIONS)
        service = IndexingService(env.store, broken, ContentExtractor(), Chunker())
        path = create_test_file(env.files, "doc.txt", "content")

        result = await service.index_file(path)

        assert not result.success
        assert "Model init failed" in result.error

    @pytest.mark.asyncio
    async def test_progress_callback(self, env):
        path = create_test_file(env.files, "long.txt", letters(5000))
        progress = []

        await env.service.index_file(path, on_progress=lambda cur, total: progress.append((cur, total)))

        assert progress[-1] == (3, 3)

    @pytest.mark.asyncio
    async def test_remove_file(self, env):
        path = create_test_file(env.files, "gone.txt", "soon removed")
        await env.service.index_file(path)

        result = await env.service.remove_file(path)

        assert result.success
        assert await env.store.list_files() == []

    @pytest.mark.asyncio
    async def test_stats_and_clear(self, env):
        await env.service.index_file(create_test_file(env.files, "a.txt", "alpha"))
        await env.service.index_file(create_test_file(env.files, "b.txt", "beta"))

        assert (await env.service.get_stats()).total_files == 2
        await env.service.clear()
        assert (await env.service.get_stats()).total_files == 0

    @pytest.mark.asyncio
    async def test_index_then_retrieve(self, env):
        await env.service.index_file(create_test_file(env.files, "fruit.txt", "apple banana cherry"))
        await env.service.index_file(create_test_file(env.files, "tools.txt", "hammer wrench saw"))
        retrieval = RetrievalService(env.store, env.embedder, top_k=1)

        result = await retrieval.retrieve("banana apple cherry")

        assert result.sources == [normalize_path(env.files / "fruit.txt")]
        assert "apple banana cherry" in result.context

    def test_discover_files_skips_hidden_and_unsupported(self, temp_dir):
        root = temp_dir / "tree"
        (root / "sub").mkdir(parents=True)
        (root / ".git").mkdir()
        create_test_file(root, "readme.md", "# hi")
        create_test_file(root / "sub", "data.csv", "a,b")
        create_test_file(root / "sub", "image.png", b"\x89PNG")
        create_test_file(root, ".secret.txt", "hidden")
        create_test_file(root / ".git", "config", "[core]")
        service = IndexingService(None, None, ContentExtractor(), Chunker())

        found = service.discover_files(root)

        assert sorted(p.name for p in found) == ["data.csv", "readme.md"]
        assert service.discover_files(root / "sub" / "image.png") == [root / "sub" / "image.png"]


def test_normalize_path_is_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert normalize_path("relative.txt") == str((tmp_path / "relative.txt").resolve())
    assert Path(normalize_path("~/x.txt")).is_absolute()
