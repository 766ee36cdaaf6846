"""FileLens Core Models Package - Domain model definitions.

The models follow these principles:
- Immutable data structures using dataclasses with frozen=True
- Validation at construction time for values produced by the pipeline
- Plain dictionary conversion for the CLI and log output
"""

from .chunk import TextChunk, estimate_tokens
from .record import IndexStats, SearchHit, VectorRecord, distinct_paths
from .result import IndexingResult, RetrievalResult

__all__ = [
    "TextChunk",
    "VectorRecord",
    "SearchHit",
    "IndexStats",
    "RetrievalResult",
    "IndexingResult",
    "estimate_tokens",
    "distinct_paths",
]
