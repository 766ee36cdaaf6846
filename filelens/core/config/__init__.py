"""
Configuration management package for FileLens.

This package provides a unified configuration system that supports:
- Multiple configuration sources (environment variables, JSON files, CLI args)
- Type-safe configuration validation using Pydantic
"""

from .embedding_config import EmbeddingConfig
from .settings_sources import find_config_files, load_json_files
from .unified_config import (
    DatabaseConfig,
    FileLensConfig,
    IndexingConfig,
    LLMConfig,
    RetrievalConfig,
)

__all__ = [
    "FileLensConfig",
    "EmbeddingConfig",
    "IndexingConfig",
    "DatabaseConfig",
    "RetrievalConfig",
    "LLMConfig",
    "find_config_files",
    "load_json_files",
]
