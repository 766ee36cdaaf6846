"""Base service class for FileLens services."""

from abc import ABC

from interfaces.database_provider import VectorStoreProvider
from interfaces.embedding_provider import EmbeddingProvider


class BaseService(ABC):
    """Base service class providing common functionality and dependency management."""

    def __init__(self, vector_store: VectorStoreProvider, embedding_provider: EmbeddingProvider):
        """Initialize service with its store and embedding dependencies.

        Args:
            vector_store: Vector store provider implementation
            embedding_provider: Embedding provider implementation
        """
        self._store = vector_store
        self._embedder = embedding_provider

    @property
    def vector_store(self) -> VectorStoreProvider:
        """Get vector store provider instance."""
        return self._store

    @property
    def embedding_provider(self) -> EmbeddingProvider:
        """Get embedding provider instance."""
        return self._embedder
