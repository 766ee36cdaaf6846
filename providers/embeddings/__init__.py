"""Embedding providers package for FileLens - concrete embedding implementations."""

from .local_engine import LocalEmbeddingEngine
from .model import SentenceTransformerModel, cosine_similarity
from .worker import EmbeddingWorker
from .worker_pool import EmbeddingWorkerPool

__all__ = [
    "EmbeddingWorkerPool",
    "EmbeddingWorker",
    "LocalEmbeddingEngine",
    "SentenceTransformerModel",
    "cosine_similarity",
]
