"""FileLens result models returned by the indexing and retrieval services."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class RetrievalResult:
    """Context assembled for one query. Never persisted.

    An empty context with no sources and a zero token count is a valid
    result meaning nothing relevant was indexed.
    """

    context: str = ""
    sources: List[str] = field(default_factory=list)
    token_count: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.context


@dataclass(frozen=True)
class IndexingResult:
    """Outcome of indexing (or removing) a single file.

    Batch callers receive one of these per file; a failure is reported in
    ``error`` rather than raised so that one bad file never fails a batch.
    """

    file_path: str
    success: bool
    chunks_created: int = 0
    total_tokens: int = 0
    indexed_at: Optional[float] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, file_path: str, error: str) -> "IndexingResult":
        return cls(file_path=file_path, success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file_path": self.file_path,
            "success": self.success,
            "chunks_created": self.chunks_created,
            "total_tokens": self.total_tokens,
            "indexed_at": self.indexed_at,
            "error": self.error,
        }
