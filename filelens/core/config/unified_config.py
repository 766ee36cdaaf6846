"""
Unified configuration system for FileLens.

This module provides a single, type-safe configuration model covering the
embedding engine, indexing pipeline, vector store, retrieval and inference
server, with hierarchical loading from multiple sources.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, EnvSettingsSource, SettingsConfigDict

from .embedding_config import EmbeddingConfig
from .settings_sources import deep_merge, find_config_files, legacy_env_values, load_json_files


class IndexingConfig(BaseModel):
    """Indexing configuration."""

    chunk_size: int = Field(
        default=500,
        ge=16,
        le=8192,
        description="Target chunk size in estimated tokens"
    )

    chunk_overlap: float = Field(
        default=0.1,
        ge=0.0,
        lt=1.0,
        description="Fraction of each chunk window shared with the next chunk"
    )

    chars_per_token: int = Field(
        default=4,
        ge=1,
        le=16,
        description="Characters per estimated token"
    )

    concurrency: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Maximum files indexed concurrently"
    )

    max_file_size: int = Field(
        default=10 * 1024 * 1024,
        ge=1,
        description="Files larger than this (bytes) are indexed by metadata only"
    )

    max_characters: int = Field(
        default=500_000,
        ge=1,
        description="Maximum extracted characters per file"
    )

    max_pdf_pages: int = Field(
        default=100,
        ge=1,
        le=10000,
        description="Maximum PDF pages to extract"
    )


class DatabaseConfig(BaseModel):
    """Vector store configuration."""

    path: Path = Field(
        default=Path.home() / ".filelens" / "vectordb",
        description="Directory holding the DuckDB vector store"
    )

    hnsw_index: bool = Field(
        default=False,
        description="Build an HNSW index with the DuckDB vss extension"
    )

    @field_validator("path", mode="before")
    def expand_path(cls, v: Any) -> Any:
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v


class RetrievalConfig(BaseModel):
    """Retrieval configuration."""

    top_k: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Number of nearest chunks fetched per query"
    )

    max_context_tokens: int = Field(
        default=4000,
        ge=1,
        le=200000,
        description="Approximate token budget for the assembled context"
    )


class LLMConfig(BaseModel):
    """Inference server configuration."""

    base_url: str = Field(
        default="http://localhost:11434",
        description="Base URL of the Ollama server"
    )

    model: str = Field(
        default="llama3.2",
        description="Generation model name"
    )

    temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Sampling temperature"
    )

    max_tokens: int = Field(
        default=2048,
        ge=1,
        le=131072,
        description="Maximum tokens to generate (sent as num_predict)"
    )

    timeout: int = Field(
        default=120,
        ge=1,
        le=3600,
        description="Generation request timeout in seconds"
    )

    probe_timeout: float = Field(
        default=5.0,
        gt=0,
        le=60,
        description="Timeout in seconds for connectivity probes"
    )

    @field_validator("base_url")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class FileLensConfig(BaseSettings):
    """
    Unified configuration for FileLens.

    Configuration Sources (in order of precedence):
    1. Runtime parameters (highest priority)
    2. Environment variables (FILELENS_*)
    3. Legacy environment variables (OLLAMA_URL, OLLAMA_MODEL, INDEXING_WORKERS)
    4. Project config file (.filelens.json)
    5. User config file (~/.filelens/config.json)
    6. Default values (lowest priority)

    Environment Variable Examples:
        FILELENS_EMBEDDING__MODE=local
        FILELENS_INDEXING__CONCURRENCY=8
        FILELENS_DATABASE__PATH=/tmp/vectordb
        FILELENS_LLM__MODEL=llama3.2
        FILELENS_DEBUG=true
    """

    model_config = SettingsConfigDict(
        env_prefix='FILELENS_',
        env_nested_delimiter='__',
        case_sensitive=False,
        validate_default=True,
        extra='ignore',
        env_file=None,
    )

    embedding: EmbeddingConfig = Field(
        default_factory=EmbeddingConfig,
        description="Embedding engine configuration"
    )

    indexing: IndexingConfig = Field(
        default_factory=IndexingConfig,
        description="Indexing configuration"
    )

    database: DatabaseConfig = Field(
        default_factory=DatabaseConfig,
        description="Vector store configuration"
    )

    retrieval: RetrievalConfig = Field(
        default_factory=RetrievalConfig,
        description="Retrieval configuration"
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="Inference server configuration"
    )

    debug: bool = Field(
        default=False,
        description="Enable debug logging"
    )

    @classmethod
    def load_hierarchical(cls,
                          project_dir: Path | None = None,
                          config_files: list[Path] | None = None,
                          **override_values: Any) -> 'FileLensConfig':
        """
        Load configuration from hierarchical sources.

        Args:
            project_dir: Project directory to search for .filelens.json
            config_files: Explicit config files, replacing the default search
            **override_values: Runtime parameter overrides

        Returns:
            Loaded and validated configuration
        """
        if config_files is None:
            config_files = find_config_files(project_dir)

        config_data = load_json_files(config_files)
        deep_merge(config_data, legacy_env_values())
        # Explicit init values outrank the environment in pydantic-settings,
        # so environment values are merged over the file values here.
        deep_merge(config_data, EnvSettingsSource(cls)())
        deep_merge(config_data, override_values)

        return cls(**config_data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode='json', exclude_none=True)

    def __repr__(self) -> str:
        return (
            f"FileLensConfig("
            f"embedding.model={self.embedding.model}, "
            f"embedding.mode={self.embedding.mode}, "
            f"database.path={self.database.path}, "
            f"llm.model={self.llm.model})"
        )
