"""Tests for the provider registry and the command line entry point."""

from unittest.mock import call, patch

import pytest

from filelens.cli import async_main, create_parser
from filelens.core.config import FileLensConfig
from providers.database.duckdb_store import DuckDBVectorStore
from providers.embeddings.local_engine import LocalEmbeddingEngine
from providers.embeddings.worker_pool import EmbeddingWorkerPool
from providers.llm.ollama_client import OllamaClient
from registry import ProviderRegistry, create_registry

from .conftest import TEST_DIMENSIONS, FakeEmbeddingModel, create_test_file


def make_config(temp_dir, **sections) -> FileLensConfig:
    sections.setdefault("database", {"path": str(temp_dir / "vectordb")})
    sections.setdefault("embedding", {"dimensions": TEST_DIMENSIONS})
    return FileLensConfig.load_hierarchical(config_files=[], **sections)


class TestProviderRegistry:

    def test_builds_worker_pool_by_default(self, temp_dir):
        registry = ProviderRegistry(make_config(temp_dir))

        provider = registry.get_embedding_provider()

        assert isinstance(provider, EmbeddingWorkerPool)
        assert provider.dimensions() == TEST_DIMENSIONS
        assert registry.get_embedding_provider() is provider

    def test_local_mode(self, temp_dir):
        config = make_config(temp_dir, embedding={"dimensions": TEST_DIMENSIONS, "mode": "local"})

        provider = ProviderRegistry(config).get_embedding_provider()

        assert isinstance(provider, LocalEmbeddingEngine)

    def test_components_follow_config(self, temp_dir):
        config = make_config(
            temp_dir,
            indexing={"chunk_size": 100, "chunk_overlap": 0.2},
            llm={"base_url": "http://gpu:11434/", "model": "mistral"},
        )
        registry = ProviderRegistry(config)

        chunker = registry.get_chunker()
        client = registry.get_llm_client()
        store = registry.get_vector_store()

        assert chunker.window == 400
        assert chunker.overlap == 80
        assert isinstance(client, OllamaClient)
        assert client.base_url == "http://gpu:11434"
        assert client.model == "mistral"
        assert isinstance(store, DuckDBVectorStore)
        assert store.dimensions == TEST_DIMENSIONS

    def test_services_share_providers(self, temp_dir):
        registry = ProviderRegistry(make_config(temp_dir))

        indexing = registry.create_indexing_service()
        retrieval = registry.create_retrieval_service()

        assert indexing.vector_store is retrieval.vector_store
        assert indexing.embedding_provider is retrieval.embedding_provider

    def test_registries_are_independent(self, temp_dir):
        first = create_registry(make_config(temp_dir))
        second = create_registry(make_config(temp_dir))

        assert first.get_metrics() is not second.get_metrics()
        assert first.get_vector_store() is not second.get_vector_store()

    @pytest.mark.asyncio
    async def test_open_index_retrieve_close(self, temp_dir):
        model = FakeEmbeddingModel()
        registry = ProviderRegistry(make_config(temp_dir), model_factory=lambda: model)
        registry.register_provider(
            "embedding", LocalEmbeddingEngine(lambda: model, TEST_DIMENSIONS, batch_pause=0)
        )
        notes = create_test_file(temp_dir, "notes.txt", "quarterly budget review")

        await registry.open()
        try:
            result = await registry.create_indexing_service().index_file(notes)
            retrieval = await registry.create_retrieval_service().retrieve("budget review quarterly")
        finally:
            await registry.close()

        assert result.success
        assert retrieval.sources == [str(notes.resolve())]
        assert not registry.get_vector_store().is_connected

    @pytest.mark.asyncio
    async def test_worker_pool_uses_model_factory(self, temp_dir):
        model = FakeEmbeddingModel()
        registry = ProviderRegistry(make_config(temp_dir), model_factory=lambda: model)

        provider = registry.get_embedding_provider()
        try:
            vector = await provider.embed("hello")
        finally:
            await registry.close()

        assert len(vector) == TEST_DIMENSIONS
        assert model.loaded


class TestCli:

    def test_parser(self):
        parser = create_parser()

        args = parser.parse_args(["--verbose", "ask", "what is due?", "--top-k", "3", "--path-prefix", "/docs"])

        assert args.verbose
        assert args.command == "ask"
        assert args.question == "what is due?"
        assert args.top_k == 3
        assert args.path_prefix == "/docs"

    @pytest.mark.asyncio
    async def test_no_command_prints_help(self, capsys):
        assert await async_main([]) == 1
        assert "usage" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_stats_on_empty_index(self, temp_dir, capsys):
        argv = ["--db", str(temp_dir / "db"), "--config", str(temp_dir / "none.json"), "--metrics", "stats"]

        assert await async_main(argv) == 0

        out = capsys.readouterr().out
        assert "Files:      0" in out
        assert "Chunks:     0" in out
        assert "=== FileLens Metrics Report ===" in out

    @pytest.mark.asyncio
    async def test_clear_and_remove(self, temp_dir, capsys):
        common = ["--db", str(temp_dir / "db"), "--config", str(temp_dir / "none.json")]

        assert await async_main(common + ["clear", "--yes"]) == 0
        assert await async_main(common + ["remove", str(temp_dir / "never-indexed.txt")]) == 0
        assert "Index cleared" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_invalid_config_file_exits_with_error(self, temp_dir):
        config_file = temp_dir / "bad.json"
        config_file.write_text('{"indexing": {"chunk_overlap": 1.5}}', encoding="utf-8")

        argv = ["--db", str(temp_dir / "db"), "--config", str(config_file), "stats"]

        assert await async_main(argv) == 1
        assert not (temp_dir / "db").exists()

    @pytest.mark.asyncio
    async def test_metrics_report_follows_the_command(self, temp_dir, capsys):
        empty = create_test_file(temp_dir, "empty.txt", "   \n")
        argv = ["--db", str(temp_dir / "db"), "--config", str(temp_dir / "none.json"), "--metrics", "index", str(empty)]

        assert await async_main(argv) == 0

        out = capsys.readouterr().out
        assert "Indexed 1/1 files (0 chunks)" in out
        assert "index_file: avg=" in out
        assert "files_indexed: 1" in out

    @pytest.mark.asyncio
    async def test_debug_setting_enables_verbose_logging(self, temp_dir):
        config_file = temp_dir / "debug.json"
        config_file.write_text('{"debug": true}', encoding="utf-8")
        argv = ["--db", str(temp_dir / "db"), "--config", str(config_file), "stats"]

        with patch("filelens.cli.setup_logging") as setup_logging:
            assert await async_main(argv) == 0

        assert setup_logging.call_args_list == [call(False), call(verbose=True)]
