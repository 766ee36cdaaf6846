"""Tests for the configuration system."""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from filelens.core.config import FileLensConfig, LLMConfig, load_json_files
from filelens.core.config.settings_sources import deep_merge, legacy_env_values

ENV_VARS = [
    "FILELENS_EMBEDDING__MODE",
    "FILELENS_INDEXING__CONCURRENCY",
    "FILELENS_DATABASE__PATH",
    "FILELENS_LLM__MODEL",
    "FILELENS_DEBUG",
    "OLLAMA_URL",
    "OLLAMA_MODEL",
    "INDEXING_WORKERS",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def write_json(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestDefaults:
    def test_default_values(self):
        config = FileLensConfig.load_hierarchical(config_files=[])

        assert config.embedding.model == "sentence-transformers/all-MiniLM-L6-v2"
        assert config.embedding.dimensions == 384
        assert config.embedding.mode == "worker"
        assert config.indexing.chunk_size == 500
        assert config.indexing.chunk_overlap == 0.1
        assert config.retrieval.top_k == 10
        assert config.retrieval.max_context_tokens == 4000
        assert config.llm.base_url == "http://localhost:11434"
        assert config.llm.model == "llama3.2"
        assert config.llm.temperature == 0.7
        assert config.llm.max_tokens == 2048
        assert config.database.path == Path.home() / ".filelens" / "vectordb"

    def test_base_url_trailing_slash_is_stripped(self):
        assert LLMConfig(base_url="http://gpu-box:11434/").base_url == "http://gpu-box:11434"

    def test_database_path_expands_user(self):
        config = FileLensConfig.load_hierarchical(config_files=[], database={"path": "~/idx"})
        assert config.database.path == Path.home() / "idx"

    def test_invalid_values_are_rejected(self):
        with pytest.raises(ValidationError):
            FileLensConfig.load_hierarchical(config_files=[], indexing={"chunk_overlap": 1.5})
        with pytest.raises(ValidationError):
            FileLensConfig.load_hierarchical(config_files=[], embedding={"model": "  "})


class TestHierarchy:
    def test_json_files_merge_in_order(self, temp_dir):
        user = write_json(temp_dir / "user.json", {"llm": {"model": "mistral", "temperature": 0.2}})
        project = write_json(temp_dir / "project.json", {"llm": {"model": "qwen2.5"}})

        config = FileLensConfig.load_hierarchical(config_files=[user, project])

        assert config.llm.model == "qwen2.5"
        assert config.llm.temperature == 0.2

    def test_env_overrides_files(self, temp_dir, monkeypatch):
        project = write_json(temp_dir / "project.json", {"indexing": {"concurrency": 2}})
        monkeypatch.setenv("FILELENS_INDEXING__CONCURRENCY", "8")

        config = FileLensConfig.load_hierarchical(config_files=[project])

        assert config.indexing.concurrency == 8

    def test_legacy_env_vars(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_URL", "http://ollama.internal:11434/")
        monkeypatch.setenv("OLLAMA_MODEL", "phi3")
        monkeypatch.setenv("INDEXING_WORKERS", "6")

        config = FileLensConfig.load_hierarchical(config_files=[])

        assert config.llm.base_url == "http://ollama.internal:11434"
        assert config.llm.model == "phi3"
        assert config.indexing.concurrency == 6

    def test_prefixed_env_beats_legacy_env(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_MODEL", "phi3")
        monkeypatch.setenv("FILELENS_LLM__MODEL", "gemma2")

        config = FileLensConfig.load_hierarchical(config_files=[])

        assert config.llm.model == "gemma2"

    def test_overrides_beat_env(self, monkeypatch):
        monkeypatch.setenv("FILELENS_EMBEDDING__MODE", "worker")

        config = FileLensConfig.load_hierarchical(config_files=[], embedding={"mode": "local"})

        assert config.embedding.mode == "local"

    def test_project_dir_config_file(self, temp_dir, monkeypatch):
        monkeypatch.setenv("HOME", str(temp_dir / "home"))
        write_json(temp_dir / ".filelens.json", {"retrieval": {"top_k": 3}})

        config = FileLensConfig.load_hierarchical(project_dir=temp_dir)

        assert config.retrieval.top_k == 3


class TestSources:
    def test_broken_and_missing_files_are_skipped(self, temp_dir):
        broken = temp_dir / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        listing = write_json(temp_dir / "list.json", [1, 2])  # type: ignore[arg-type]
        good = write_json(temp_dir / "good.json", {"debug": True})

        data = load_json_files([temp_dir / "missing.json", broken, listing, good])

        assert data == {"debug": True}

    def test_legacy_env_values_only_includes_set_vars(self, monkeypatch):
        assert legacy_env_values() == {}
        monkeypatch.setenv("OLLAMA_MODEL", "phi3")
        assert legacy_env_values() == {"llm": {"model": "phi3"}}

    def test_deep_merge(self):
        base = {"llm": {"model": "a", "temperature": 0.1}, "debug": False}
        deep_merge(base, {"llm": {"model": "b"}, "debug": True})
        assert base == {"llm": {"model": "b", "temperature": 0.1}, "debug": True}

    def test_to_dict_is_json_safe(self):
        config = FileLensConfig.load_hierarchical(config_files=[])
        data = config.to_dict()
        json.dumps(data)
        assert data["embedding"]["mode"] == "worker"
