"""Services package for FileLens - indexing and retrieval orchestration."""

from .base_service import BaseService
from .indexing_service import IndexingService
from .retrieval_service import RetrievalService

__all__ = [
    "BaseService",
    "IndexingService",
    "RetrievalService",
]
