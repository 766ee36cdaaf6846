"""FileLens Core Types - Common type definitions and aliases.

This module contains type definitions, enums, and type aliases used throughout
the FileLens system.
"""

from enum import Enum
from typing import Callable, List, NewType


RecordId = NewType("RecordId", str)         # "<file_path>:<chunk_index>"

# Complex types
EmbeddingVector = List[float]              # Vector embedding representation
ProgressCallback = Callable[[int, int], None]  # (current, total)


class ContentType(Enum):
    """How much of a file the extractor was able to turn into text."""

    FULL = "full"
    METADATA = "metadata"


class WorkerState(Enum):
    """Lifecycle states of the background embedding worker."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


def make_record_id(file_path: str, chunk_index: int) -> RecordId:
    """Build the deterministic vector record id for a chunk."""
    return RecordId(f"{file_path}:{chunk_index}")
