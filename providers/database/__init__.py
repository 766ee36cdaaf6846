"""Database providers package for FileLens - concrete vector store implementations."""

from .duckdb_store import DuckDBVectorStore

__all__ = [
    "DuckDBVectorStore",
]
