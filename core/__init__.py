"""FileLens Core Package - Domain models, types, and exceptions.

This package contains the core domain models and types shared by the
indexing and retrieval pipeline. They are independent of the embedding
model, the vector database and the inference server.

Modules:
    models: Domain models for chunks, vector records and results
    types: Common type definitions and aliases
    exceptions: Core exception classes for error handling
"""

from .exceptions import (
    DatabaseError,
    EmbeddingError,
    FileLensError,
    InferenceError,
    ValidationError,
    WorkerError,
    WorkerExitedError,
)
from .models import IndexingResult, IndexStats, RetrievalResult, SearchHit, TextChunk, VectorRecord
from .types import ContentType, WorkerState

__all__ = [
    # Domain Models
    "TextChunk",
    "VectorRecord",
    "SearchHit",
    "IndexStats",
    "RetrievalResult",
    "IndexingResult",

    # Types
    "ContentType",
    "WorkerState",

    # Exceptions
    "FileLensError",
    "ValidationError",
    "EmbeddingError",
    "WorkerError",
    "WorkerExitedError",
    "DatabaseError",
    "InferenceError",
]

__version__ = "0.1.0"
