"""In-process embedding engine for FileLens.

Same contract as EmbeddingWorkerPool but inference runs on the caller's
thread, yielding to the event loop between items and sub-batches. Used for
tests and for small one-shot jobs where starting a worker is not worth it.
"""

import asyncio
from typing import Callable

from loguru import logger

from core.exceptions import EmbeddingError
from core.types import ProgressCallback, WorkerState
from filelens.metrics import MetricOperation, MetricsRecorder
from interfaces.embedding_provider import EmbeddingModel
from providers.embeddings.model import DEFAULT_DIMENSIONS, cosine_similarity


class LocalEmbeddingEngine:
    """Embedding provider running the model in-process."""

    def __init__(
        self,
        model_factory: Callable[[], EmbeddingModel],
        dimensions: int = DEFAULT_DIMENSIONS,
        batch_size: int = 4,
        progress_interval: int = 5,
        batch_pause: float = 0.05,
        metrics: MetricsRecorder | None = None,
    ):
        self._model_factory = model_factory
        self._dimensions = dimensions
        self._batch_size = batch_size
        self._progress_interval = progress_interval
        self._batch_pause = batch_pause
        self._metrics = metrics
        self._model: EmbeddingModel | None = None
        self._state = WorkerState.UNINITIALIZED
        self._init_task: asyncio.Task | None = None

    @property
    def name(self) -> str:
        return "local"

    @property
    def model(self) -> str:
        return self._model.name if self._model is not None else "unloaded"

    @property
    def state(self) -> WorkerState:
        return self._state

    def dimensions(self) -> int:
        return self._dimensions

    def similarity(self, a: list[float], b: list[float]) -> float:
        return cosine_similarity(a, b)

    async def initialize(self) -> None:
        if self._state is WorkerState.READY:
            return
        if self._init_task is None:
            self._state = WorkerState.INITIALIZING
            self._init_task = asyncio.create_task(self._load())
        try:
            await asyncio.shield(self._init_task)
        finally:
            if self._init_task is not None and self._init_task.done():
                self._init_task = None

    async def _load(self) -> None:
        try:
            model = self._model_factory()
            model.load()
        except Exception as e:
            self._state = WorkerState.FAILED
            logger.error(f"Local embedding model init failed: {e}")
            raise EmbeddingError(provider=self.name, operation="init", reason=f"Model init failed: {e}") from e
        self._model = model
        self._state = WorkerState.READY

    async def embed(self, text: str) -> list[float]:
        if self._metrics is not None:
            with self._metrics.timer(MetricOperation.EMBED_SINGLE):
                return (await self._embed_all([text], None))[0]
        return (await self._embed_all([text], None))[0]

    async def embed_batch(
        self,
        texts: list[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[list[float]]:
        if not texts:
            return []
        if self._metrics is not None:
            with self._metrics.timer(MetricOperation.EMBED_BATCH):
                return await self._embed_all(texts, on_progress)
        return await self._embed_all(texts, on_progress)

    async def _embed_all(
        self,
        texts: list[str],
        on_progress: ProgressCallback | None,
    ) -> list[list[float]]:
        await self.initialize()

        embeddings: list[list[float]] = []
        total = len(texts)
        for start in range(0, total, self._batch_size):
            for i in range(start, min(start + self._batch_size, total)):
                try:
                    embeddings.append(self._model.encode(texts[i]))
                except Exception as e:
                    raise EmbeddingError(provider=self.name, operation="embed", reason=str(e)) from e
                if on_progress is not None and (i % self._progress_interval == 0 or i == total - 1):
                    on_progress(i + 1, total)
                await asyncio.sleep(0)

            if start + self._batch_size < total:
                await asyncio.sleep(self._batch_pause)

        return embeddings

    async def shutdown(self) -> None:
        self._model = None
        self._state = WorkerState.UNINITIALIZED

    async def terminate(self) -> None:
        await self.shutdown()
