"""Indexing service for FileLens - orchestrates extract, chunk, embed and store."""

import asyncio
import os
import time
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from loguru import logger

from core.exceptions import FileLensError
from core.models import IndexingResult, IndexStats
from core.types import ProgressCallback
from filelens.chunker import Chunker
from filelens.extractor import ContentExtractor
from filelens.metrics import MetricOperation, MetricsRecorder
from interfaces.database_provider import VectorStoreProvider
from interfaces.embedding_provider import EmbeddingProvider
from .base_service import BaseService

PathLike = Union[str, Path]


def normalize_path(file_path: PathLike) -> str:
    """Absolute path string used as the record key for a file."""
    return str(Path(file_path).expanduser().resolve())


class IndexingService(BaseService):
    """Indexes files into the vector store.

    Re-indexing a file upserts its chunks by deterministic id and then
    prunes any records beyond the new chunk count, so the stored chunk set
    always matches the latest extraction.
    """

    def __init__(
        self,
        vector_store: VectorStoreProvider,
        embedding_provider: EmbeddingProvider,
        extractor: ContentExtractor,
        chunker: Chunker,
        concurrency: int = 4,
        metrics: Optional[MetricsRecorder] = None,
    ):
        """Initialize indexing service.

        Args:
            vector_store: Vector store for persistence
            embedding_provider: Embedding provider for vector generation
            extractor: Converts files into text or metadata descriptions
            chunker: Splits extracted text into chunks
            concurrency: Maximum files indexed at once by index_files
            metrics: Optional latency recorder
        """
        super().__init__(vector_store, embedding_provider)
        self._extractor = extractor
        self._chunker = chunker
        self._concurrency = max(1, concurrency)
        self._metrics = metrics

    async def index_file(
        self,
        file_path: PathLike,
        on_progress: Optional[ProgressCallback] = None,
    ) -> IndexingResult:
        """Index a single file.

        Args:
            file_path: File to index
            on_progress: Optional embedding progress callback (current, total)

        Returns:
            IndexingResult; failures are reported in ``error``, not raised
        """
        path = normalize_path(file_path)
        stop_timer = self._metrics.start_timer(MetricOperation.INDEX_FILE) if self._metrics is not None else None

        try:
            result = await self._index_file(path, on_progress)
        except (FileLensError, OSError) as e:
            logger.error(f"Failed to index {path}: {e}")
            result = IndexingResult.failure(path, str(e))
        finally:
            if stop_timer is not None:
                stop_timer()

        if self._metrics is not None:
            self._metrics.increment_counter("files_indexed" if result.success else "files_failed")
        return result

    async def _index_file(self, path: str, on_progress: Optional[ProgressCallback]) -> IndexingResult:
        extraction = await asyncio.to_thread(self._extractor.extract, path)
        if not extraction.success:
            logger.warning(f"Skipping {path}: {extraction.error}")
            return IndexingResult.failure(path, extraction.error or "Extraction failed")

        if extraction.is_metadata:
            logger.info(f"Indexing metadata only for {path}: {extraction.error}")
            chunks = [self._chunker.metadata_chunk(extraction.content)]
        else:
            chunks = self._chunker.chunk(extraction.content or "")

        if not chunks:
            removed = await self._store.delete_file(path)
            logger.debug(f"No indexable text in {path} (removed {removed} stale chunks)")
            return IndexingResult(file_path=path, success=True, indexed_at=time.time())

        embeddings = await self._embedder.embed_batch([chunk.text for chunk in chunks], on_progress)
        await self._store.add_chunks(chunks, embeddings, path)

        stale = await self._store.prune_file(path, len(chunks))
        if stale:
            logger.debug(f"Pruned {stale} stale chunks from previous index of {path}")

        total_tokens = sum(chunk.token_estimate for chunk in chunks)
        logger.info(f"Indexed {path}: {len(chunks)} chunks, ~{total_tokens} tokens")
        return IndexingResult(
            file_path=path,
            success=True,
            chunks_created=len(chunks),
            total_tokens=total_tokens,
            indexed_at=time.time(),
        )

    async def index_files(
        self,
        file_paths: Iterable[PathLike],
        on_file_done: Optional[Callable[[IndexingResult, int, int], None]] = None,
    ) -> list[IndexingResult]:
        """Index several files with bounded concurrency.

        Args:
            file_paths: Files to index
            on_file_done: Optional callback receiving (result, completed, total)

        Returns:
            One IndexingResult per input path, in input order
        """
        paths = list(file_paths)
        if not paths:
            return []

        semaphore = asyncio.Semaphore(self._concurrency)
        completed = 0

        async def index_one(file_path: PathLike) -> IndexingResult:
            nonlocal completed
            async with semaphore:
                result = await self.index_file(file_path)
            completed += 1
            if on_file_done is not None:
                on_file_done(result, completed, len(paths))
            return result

        logger.info(f"Indexing {len(paths)} files (concurrency {self._concurrency})")
        outcomes = await asyncio.gather(*(index_one(p) for p in paths), return_exceptions=True)

        results: list[IndexingResult] = []
        for file_path, outcome in zip(paths, outcomes):
            if isinstance(outcome, IndexingResult):
                results.append(outcome)
            elif isinstance(outcome, asyncio.CancelledError):
                raise outcome
            else:
                logger.error(f"Unexpected error indexing {file_path}: {outcome}")
                results.append(IndexingResult.failure(normalize_path(file_path), str(outcome)))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Indexed {succeeded}/{len(results)} files")
        return results

    async def remove_file(self, file_path: PathLike) -> IndexingResult:
        """Remove every indexed chunk of a file."""
        path = normalize_path(file_path)
        try:
            removed = await self._store.delete_file(path)
        except FileLensError as e:
            logger.error(f"Failed to remove {path} from index: {e}")
            return IndexingResult.failure(path, str(e))
        logger.info(f"Removed {removed} chunks for {path}")
        return IndexingResult(file_path=path, success=True)

    async def get_stats(self) -> IndexStats:
        return await self._store.get_stats()

    async def clear(self) -> None:
        await self._store.clear()

    def discover_files(self, root: PathLike) -> list[Path]:
        """Supported files under a directory, skipping hidden entries.

        A path that is a file is returned as-is regardless of extension.
        """
        root_path = Path(root).expanduser()
        if root_path.is_file():
            return [root_path]

        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root_path):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for filename in sorted(filenames):
                if filename.startswith("."):
                    continue
                candidate = Path(dirpath) / filename
                if self._extractor.is_supported(candidate):
                    found.append(candidate)
        return found
