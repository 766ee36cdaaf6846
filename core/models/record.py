"""FileLens vector store models - persisted records, search hits and stats."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..types import EmbeddingVector, RecordId, make_record_id


@dataclass(frozen=True)
class VectorRecord:
    """One persisted chunk vector.

    The id is derived from ``file_path`` and ``chunk_index`` so that
    re-indexing a file overwrites its previous records instead of adding
    new ones.
    """

    chunk_text: str
    file_path: str
    chunk_index: int
    indexed_at: float
    embedding: EmbeddingVector = field(default_factory=list, repr=False)

    @property
    def id(self) -> RecordId:
        return make_record_id(self.file_path, self.chunk_index)

    @property
    def indexed_datetime(self) -> datetime:
        return datetime.fromtimestamp(self.indexed_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chunk_text": self.chunk_text,
            "file_path": self.file_path,
            "chunk_index": self.chunk_index,
            "indexed_at": self.indexed_at,
        }


@dataclass(frozen=True)
class SearchHit:
    """A vector record together with its cosine similarity to the query."""

    record: VectorRecord
    score: float

    @property
    def file_path(self) -> str:
        return self.record.file_path

    @property
    def chunk_text(self) -> str:
        return self.record.chunk_text


@dataclass(frozen=True)
class IndexStats:
    """Aggregate view of the vector store.

    Attributes:
        total_files: Number of distinct file paths
        total_chunks: Number of chunk records
        total_tokens: Estimated tokens across all chunk text (derived, not stored)
        index_size_bytes: Approximate on-disk size of the store
        last_indexed: Most recent indexed_at timestamp, None for an empty store
    """

    total_files: int = 0
    total_chunks: int = 0
    total_tokens: int = 0
    index_size_bytes: int = 0
    last_indexed: Optional[float] = None

    @classmethod
    def empty(cls) -> "IndexStats":
        return cls()

    @property
    def last_indexed_datetime(self) -> Optional[datetime]:
        return datetime.fromtimestamp(self.last_indexed) if self.last_indexed is not None else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_chunks": self.total_chunks,
            "total_tokens": self.total_tokens,
            "index_size_bytes": self.index_size_bytes,
            "last_indexed": self.last_indexed,
        }


def distinct_paths(hits: List[SearchHit]) -> List[str]:
    """Distinct file paths of the given hits in first-seen order."""
    return list(dict.fromkeys(hit.file_path for hit in hits))
