"""VectorStoreProvider protocol for FileLens - abstract interface for vector stores."""

from pathlib import Path
from typing import Protocol

from core.models import IndexStats, SearchHit, TextChunk


class VectorStoreProvider(Protocol):
    """Abstract protocol for the persistent chunk vector store.

    The store owns every persisted record. Record ids are derived from
    ``file_path`` and ``chunk_index`` so writing the same file again
    overwrites rather than duplicates.
    """

    @property
    def location(self) -> Path | None:
        """Directory holding the store, None before initialize()."""
        ...

    @property
    def dimensions(self) -> int:
        """Embedding dimensions stored in the table."""
        ...

    async def initialize(self, location: str | Path) -> None:
        """Open or create the store; a repeat call with the same location is a no-op."""
        ...

    async def add_chunks(
        self,
        chunks: list[TextChunk],
        embeddings: list[list[float]],
        file_path: str,
    ) -> int:
        """Upsert one record per chunk.

        Returns:
            Number of records written

        Raises:
            ValidationError: On a chunk/embedding count or dimension mismatch
            DatabaseError: If the write fails
        """
        ...

    async def search(
        self,
        query_embedding: list[float],
        top_k: int = 10,
        path_prefix: str | None = None,
    ) -> list[SearchHit]:
        """Nearest records by descending cosine similarity; [] on an empty store."""
        ...

    async def delete_file(self, file_path: str) -> int:
        """Delete every record for exactly this path and return the count removed."""
        ...

    async def prune_file(self, file_path: str, keep_count: int) -> int:
        """Delete records for this path whose chunk_index >= keep_count."""
        ...

    async def list_files(self) -> list[str]:
        """Distinct indexed file paths."""
        ...

    async def get_stats(self) -> IndexStats:
        """Aggregate statistics; all zero for an empty store."""
        ...

    async def clear(self) -> None:
        """Drop and recreate the chunk table."""
        ...

    async def close(self) -> None:
        """Close the underlying connection."""
        ...
