"""Retrieval service for FileLens - turns a query into a bounded, attributed context."""

from typing import Optional

from loguru import logger

from core.models import RetrievalResult, SearchHit, distinct_paths, estimate_tokens
from core.models.chunk import CHARS_PER_TOKEN
from filelens.metrics import MetricOperation, MetricsRecorder
from interfaces.database_provider import VectorStoreProvider
from interfaces.embedding_provider import EmbeddingProvider
from .base_service import BaseService

CHUNK_SEPARATOR = "\n\n---\n\n"


def format_hit(hit: SearchHit) -> str:
    return f"[Source: {hit.file_path}]\n{hit.chunk_text}"


def assemble_context(hits: list[SearchHit], max_tokens: int) -> RetrievalResult:
    """Concatenate hits in the given order until the token budget is reached.

    The first hit is always included, truncated if it alone exceeds the
    budget; later hits are only added whole. Sources list the distinct
    files of the included hits in first-seen order.
    """
    if not hits:
        return RetrievalResult()

    max_chars = max_tokens * CHARS_PER_TOKEN
    parts: list[str] = []
    included: list[SearchHit] = []
    length = 0

    for hit in hits:
        block = format_hit(hit)
        candidate = length + (len(CHUNK_SEPARATOR) if parts else 0) + len(block)
        if candidate > max_chars:
            if not parts:
                parts.append(block[:max_chars])
                included.append(hit)
            break
        parts.append(block)
        included.append(hit)
        length = candidate

    context = CHUNK_SEPARATOR.join(parts)
    return RetrievalResult(
        context=context,
        sources=distinct_paths(included),
        token_count=estimate_tokens(context),
    )


class RetrievalService(BaseService):
    """Embeds queries, searches the vector store and assembles context."""

    def __init__(
        self,
        vector_store: VectorStoreProvider,
        embedding_provider: EmbeddingProvider,
        top_k: int = 10,
        max_context_tokens: int = 4000,
        metrics: Optional[MetricsRecorder] = None,
    ):
        """Initialize retrieval service.

        Args:
            vector_store: Vector store to search
            embedding_provider: Provider used to embed the query
            top_k: Nearest chunks fetched per query
            max_context_tokens: Approximate token budget for the context
            metrics: Optional latency recorder
        """
        super().__init__(vector_store, embedding_provider)
        self._top_k = top_k
        self._max_context_tokens = max_context_tokens
        self._metrics = metrics

    async def retrieve(
        self,
        query: str,
        top_k: Optional[int] = None,
        path_prefix: Optional[str] = None,
    ) -> RetrievalResult:
        """Retrieve context for a query.

        Args:
            query: Natural-language query
            top_k: Override the configured number of chunks
            path_prefix: Restrict the search to files under this path

        Returns:
            RetrievalResult; empty (no context, no sources, zero tokens) when
            nothing relevant is indexed
        """
        if not query or not query.strip():
            return RetrievalResult()

        stop_timer = self._metrics.start_timer(MetricOperation.RETRIEVAL) if self._metrics is not None else None
        try:
            query_embedding = await self._embedder.embed(query)
            hits = await self._store.search(query_embedding, top_k or self._top_k, path_prefix)
            if not hits:
                logger.debug("Retrieval found no indexed chunks")
                return RetrievalResult()

            ranked = sorted(hits, key=lambda hit: hit.score, reverse=True)
            result = assemble_context(ranked, self._max_context_tokens)
        finally:
            if stop_timer is not None:
                stop_timer()

        logger.debug(
            f"Retrieved {len(ranked)} chunks from {len(result.sources)} files "
            f"({result.token_count} tokens)"
        )
        return result
