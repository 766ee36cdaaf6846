"""Embedding worker pool for FileLens - the isolation boundary around inference.

The pool owns one background EmbeddingWorker, multiplexes concurrent batch
requests over its single message channel and matches responses back to
callers by correlation id. Worker messages arrive on the worker thread and
are handed to the event loop with ``call_soon_threadsafe``; all pool state
is only touched from the loop.
"""

import asyncio
import functools
import itertools
import threading
from dataclasses import dataclass
from typing import Callable

from loguru import logger

from core.exceptions import EmbeddingError, WorkerError, WorkerExitedError
from core.types import ProgressCallback, WorkerState
from filelens.metrics import MetricOperation, MetricsRecorder
from interfaces.embedding_provider import EmbeddingModel
from providers.embeddings.model import DEFAULT_DIMENSIONS, DEFAULT_MODEL, cosine_similarity
from providers.embeddings.worker import INIT_REQUEST_ID, EmbeddingWorker, Message


@dataclass
class _PendingRequest:
    future: asyncio.Future
    on_progress: ProgressCallback | None = None
    size: int = 0


class EmbeddingWorkerPool:
    """Embedding provider that runs inference on a background worker thread.

    Lifecycle::

        UNINITIALIZED -> INITIALIZING -> READY
        READY -> FAILED                  (worker crashed or exited)
        FAILED -> INITIALIZING           (explicit initialize() only)

    A request issued while UNINITIALIZED starts the worker implicitly. A
    request issued while FAILED is rejected until initialize() is called.
    """

    def __init__(
        self,
        model_factory: Callable[[], EmbeddingModel],
        dimensions: int = DEFAULT_DIMENSIONS,
        model_name: str = DEFAULT_MODEL,
        progress_interval: int = 5,
        yield_every: int = 100,
        shutdown_timeout: float = 5.0,
        metrics: MetricsRecorder | None = None,
    ):
        """Initialize the pool without starting the worker.

        Args:
            model_factory: Creates the embedding model inside the worker thread
            dimensions: Length of every vector the model produces
            model_name: Model name, for logging and error context
            progress_interval: Worker progress cadence in items
            yield_every: Worker coarse-pause cadence in items
            shutdown_timeout: Seconds terminate() waits for the thread to stop
            metrics: Optional latency recorder
        """
        self._model_factory = model_factory
        self._dimensions = dimensions
        self._model_name = model_name
        self._progress_interval = progress_interval
        self._yield_every = yield_every
        self._shutdown_timeout = shutdown_timeout
        self._metrics = metrics

        self._state = WorkerState.UNINITIALIZED
        self._worker: EmbeddingWorker | None = None
        self._generation = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._init_future: asyncio.Future | None = None
        self._pending: dict[int, _PendingRequest] = {}
        self._request_ids = itertools.count(1)
        self._id_lock = threading.Lock()

    @property
    def name(self) -> str:
        return "worker"

    @property
    def model(self) -> str:
        return self._model_name

    @property
    def state(self) -> WorkerState:
        return self._state

    @property
    def has_worker(self) -> bool:
        return self._worker is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def dimensions(self) -> int:
        return self._dimensions

    def similarity(self, a: list[float], b: list[float]) -> float:
        return cosine_similarity(a, b)

    async def initialize(self) -> None:
        """Start the worker and load the model.

        Concurrent callers share one in-flight initialization. Calling this
        in the FAILED state starts a fresh worker.

        Raises:
            WorkerError: If the model fails to load or the worker exits first
        """
        if self._state is WorkerState.READY and self._worker is not None:
            return

        if self._init_future is None:
            loop = asyncio.get_running_loop()
            self._loop = loop
            self._init_future = loop.create_future()
            self._state = WorkerState.INITIALIZING
            self._start_worker()

        await asyncio.shield(self._init_future)

    def _start_worker(self) -> None:
        self._generation += 1
        generation = self._generation
        logger.info(f"Starting embedding worker #{generation} for {self._model_name}")

        self._worker = EmbeddingWorker(
            model_factory=self._model_factory,
            post=functools.partial(self._post_from_worker, generation),
            progress_interval=self._progress_interval,
            yield_every=self._yield_every,
            name=f"filelens-embedding-worker-{generation}",
        )
        self._worker.start()
        self._worker.send({"kind": "init"})

    def _next_request_id(self) -> int:
        with self._id_lock:
            return next(self._request_ids)

    async def embed(self, text: str) -> list[float]:
        if self._metrics is not None:
            with self._metrics.timer(MetricOperation.EMBED_SINGLE):
                results = await self._request([text], None)
        else:
            results = await self._request([text], None)
        return results[0]

    async def embed_batch(
        self,
        texts: list[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[list[float]]:
        if not texts:
            return []
        if self._metrics is not None:
            with self._metrics.timer(MetricOperation.EMBED_BATCH):
                return await self._request(texts, on_progress)
        return await self._request(texts, on_progress)

    async def _request(
        self,
        texts: list[str],
        on_progress: ProgressCallback | None,
    ) -> list[list[float]]:
        if self._state is WorkerState.FAILED:
            raise WorkerError("Embedding worker has failed; call initialize() to restart it")

        await self.initialize()

        worker = self._worker
        if worker is None:
            raise WorkerError("Embedding worker not available")

        request_id = self._next_request_id()
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingRequest(future, on_progress, len(texts))
        logger.debug(f"Embedding request {request_id}: {len(texts)} texts")

        worker.send({"kind": "embed", "id": request_id, "texts": list(texts)})
        try:
            embeddings = await future
        finally:
            # Abandoned requests are dropped here; a late result is ignored.
            self._pending.pop(request_id, None)

        if len(embeddings) != len(texts):
            raise EmbeddingError(
                provider=self.name,
                model=self._model_name,
                operation="embed",
                reason=f"Worker returned {len(embeddings)} embeddings for {len(texts)} texts",
            )
        return embeddings

    def _post_from_worker(self, generation: int, message: Message) -> None:
        """Runs on the worker thread; forwards the message to the event loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"Event loop closed, dropping worker message {message.get('kind')}")
            return
        try:
            loop.call_soon_threadsafe(self._handle_message, generation, message)
        except RuntimeError:
            logger.debug(f"Event loop closed, dropping worker message {message.get('kind')}")

    def _handle_message(self, generation: int, message: Message) -> None:
        if generation != self._generation:
            logger.debug(f"Ignoring {message.get('kind')} from retired worker #{generation}")
            return

        kind = message.get("kind")
        if kind == "ready":
            logger.debug(f"Embedding worker #{generation} ready")
        elif kind == "initialized":
            self._state = WorkerState.READY
            logger.info(f"Embedding worker #{generation} initialized")
            self._resolve_init(None)
        elif kind == "result":
            pending = self._pending.get(message["id"])
            if pending is not None and not pending.future.done():
                pending.future.set_result(message["embeddings"])
        elif kind == "progress":
            self._dispatch_progress(message)
        elif kind == "error":
            self._handle_error(message)
        elif kind == "exit":
            self._handle_exit(message.get("code", 1))
        else:
            logger.warning(f"Unknown message from embedding worker: {kind}")

    def _dispatch_progress(self, message: Message) -> None:
        pending = self._pending.get(message["id"])
        if pending is None or pending.on_progress is None:
            return
        try:
            pending.on_progress(message["current"], message["total"])
        except Exception as e:
            logger.warning(f"Progress callback for request {message['id']} failed: {e}")

    def _handle_error(self, message: Message) -> None:
        request_id = message.get("id", INIT_REQUEST_ID)
        text = message.get("message") or "Unknown worker error"
        logger.error(f"Embedding worker error (request {request_id}): {text}")

        if request_id is None or request_id < 0:
            if self._state is WorkerState.INITIALIZING:
                self._state = WorkerState.FAILED
                self._resolve_init(WorkerError(text))
            return

        pending = self._pending.get(request_id)
        if pending is not None and not pending.future.done():
            pending.future.set_exception(WorkerError(text, request_id))

    def _handle_exit(self, code: int) -> None:
        if code != 0:
            logger.error(f"Embedding worker exited with code {code}")
        else:
            logger.info("Embedding worker exited")

        self._worker = None
        # A new generation makes any message still in flight from this worker stale.
        self._generation += 1
        self._fail_pending(code)

        if self._state is not WorkerState.UNINITIALIZED:
            self._state = WorkerState.FAILED
        self._resolve_init(WorkerExitedError(code))

    def _fail_pending(self, code: int) -> None:
        pending, self._pending = self._pending, {}
        for request_id, request in pending.items():
            if not request.future.done():
                request.future.set_exception(WorkerExitedError(code, request_id))

    def _resolve_init(self, error: Exception | None) -> None:
        future, self._init_future = self._init_future, None
        if future is None or future.done():
            return
        if error is None:
            future.set_result(None)
        else:
            future.set_exception(error)

    async def terminate(self) -> None:
        """Stop the worker, rejecting every request still pending.

        Python threads cannot be killed; if the worker is busy with a long
        batch it keeps running as a daemon until that batch completes.
        """
        worker = self._worker
        self._state = WorkerState.UNINITIALIZED
        if worker is None:
            return

        logger.info("Terminating embedding worker")
        # Retire the worker first: pending requests fail now and anything it
        # still posts belongs to a stale generation.
        self._handle_exit(0)

        worker.send({"kind": "terminate"})
        stopped = await asyncio.to_thread(worker.join, self._shutdown_timeout)
        if not stopped:
            logger.warning(f"Embedding worker did not stop within {self._shutdown_timeout}s")

    async def shutdown(self) -> None:
        await self.terminate()
