"""FileLens Core Types Package - Common type definitions and aliases."""

from .common import (
    ContentType,
    EmbeddingVector,
    ProgressCallback,
    RecordId,
    WorkerState,
    make_record_id,
)

__all__ = [
    # Enums
    "ContentType",
    "WorkerState",

    # Aliases
    "RecordId",
    "EmbeddingVector",
    "ProgressCallback",

    # Helpers
    "make_record_id",
]
