"""Interfaces package for FileLens - abstract protocols for provider implementations."""

from .database_provider import VectorStoreProvider
from .embedding_provider import EmbeddingModel, EmbeddingProvider

__all__ = [
    "VectorStoreProvider",
    "EmbeddingModel",
    "EmbeddingProvider",
]
