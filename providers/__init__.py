"""Providers package for FileLens - concrete implementations of abstract interfaces."""

from .database import DuckDBVectorStore
from .embeddings import EmbeddingWorkerPool, LocalEmbeddingEngine, SentenceTransformerModel
from .llm import OllamaClient

__all__ = [
    # Vector store
    "DuckDBVectorStore",

    # Embedding providers
    "EmbeddingWorkerPool",
    "LocalEmbeddingEngine",
    "SentenceTransformerModel",

    # Inference
    "OllamaClient",
]
