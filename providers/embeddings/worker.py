"""Background embedding worker for FileLens.

The worker owns an EmbeddingModel on a dedicated thread and talks to its
owner purely through messages, so CPU-bound inference never runs on the
caller's event loop.

Message Protocol:

Inbound (``send``):
    {"kind": "init"}                                Load the model
    {"kind": "embed", "id": int, "texts": [str]}    Embed a batch
    {"kind": "terminate"}                           Stop the worker

Outbound (``post`` callback, called on the worker thread):
    {"kind": "ready"}                               Thread alive, model not loaded
    {"kind": "initialized"}                         Model loaded
    {"kind": "result", "id": int, "embeddings": [[float]]}
    {"kind": "progress", "id": int, "current": int, "total": int}
    {"kind": "error", "id": int, "message": str}    id -1 for init failures
    {"kind": "exit", "code": int}                   Always the last message
"""

import queue
import threading
import time
from typing import Any, Callable

from loguru import logger

from interfaces.embedding_provider import EmbeddingModel

INIT_REQUEST_ID = -1

Message = dict[str, Any]


class _ModelInitError(Exception):
    """Model failed to load; the worker reports it and exits."""


class EmbeddingWorker:
    """Runs one embedding model on a dedicated daemon thread."""

    def __init__(
        self,
        model_factory: Callable[[], EmbeddingModel],
        post: Callable[[Message], None],
        progress_interval: int = 5,
        yield_every: int = 100,
        yield_pause: float = 0.001,
        name: str = "filelens-embedding-worker",
    ):
        """Initialize the worker.

        Args:
            model_factory: Creates the model inside the worker thread
            post: Receives every outbound message
            progress_interval: Send progress every N items (and on the last)
            yield_every: Pause for ``yield_pause`` seconds every N items
            yield_pause: Length of the coarse pause
            name: Thread name
        """
        self._model_factory = model_factory
        self._post = post
        self._progress_interval = progress_interval
        self._yield_every = yield_every
        self._yield_pause = yield_pause
        self._inbox: "queue.Queue[Message]" = queue.Queue()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._model: EmbeddingModel | None = None
        self._processed = 0

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        self._thread.start()

    def send(self, message: Message) -> None:
        self._inbox.put(message)

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the thread to finish; True if it has stopped."""
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _run(self) -> None:
        exit_code = 0
        try:
            self._post({"kind": "ready"})
            self._loop()
        except _ModelInitError:
            exit_code = 1
        except SystemExit as e:
            exit_code = e.code if isinstance(e.code, int) and e.code != 0 else 1
            logger.error(f"Embedding worker exiting with code {exit_code}")
        except BaseException as e:
            exit_code = 1
            logger.exception(f"Embedding worker crashed: {e}")
        finally:
            self._model = None
            self._post({"kind": "exit", "code": exit_code})

    def _loop(self) -> None:
        while True:
            message = self._inbox.get()
            kind = message.get("kind")

            if kind == "terminate":
                logger.debug("Embedding worker received terminate")
                return
            elif kind == "init":
                self._ensure_model()
            elif kind == "embed":
                self._handle_embed(message)
            else:
                self._post({
                    "kind": "error",
                    "id": message.get("id", INIT_REQUEST_ID),
                    "message": f"Unknown message type: {kind}",
                })

    def _ensure_model(self) -> None:
        if self._model is not None:
            return
        try:
            model = self._model_factory()
            model.load()
        except Exception as e:
            logger.error(f"Embedding model init failed: {e}")
            self._post({"kind": "error", "id": INIT_REQUEST_ID, "message": f"Model init failed: {e}"})
            raise _ModelInitError(str(e)) from e
        self._model = model
        self._post({"kind": "initialized"})

    def _handle_embed(self, message: Message) -> None:
        request_id = message["id"]
        texts = message.get("texts") or []

        self._ensure_model()

        try:
            embeddings = self._embed_batch(request_id, texts)
        except Exception as e:
            logger.warning(f"Embedding request {request_id} failed: {e}")
            self._post({"kind": "error", "id": request_id, "message": str(e)})
            return

        self._post({"kind": "result", "id": request_id, "embeddings": embeddings})

    def _embed_batch(self, request_id: int, texts: list[str]) -> list[list[float]]:
        embeddings = []
        total = len(texts)

        for i, text in enumerate(texts):
            embeddings.append(self._model.encode(text))
            self._processed += 1

            if i % self._progress_interval == 0 or i == total - 1:
                self._post({"kind": "progress", "id": request_id, "current": i + 1, "total": total})

            # Yield between items; pause longer every yield_every items.
            if self._processed % self._yield_every == 0:
                time.sleep(self._yield_pause)
            else:
                time.sleep(0)

        return embeddings
