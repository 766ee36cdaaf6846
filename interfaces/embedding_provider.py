"""EmbeddingProvider protocol for FileLens - abstract interface for embedding engines."""

from typing import Protocol

from core.types import ProgressCallback, WorkerState


class EmbeddingModel(Protocol):
    """A loaded text embedding model.

    Implementations are synchronous and CPU-bound; they are only ever called
    from inside an embedding engine, never directly from the event loop.
    """

    @property
    def name(self) -> str:
        """Model name (e.g., 'sentence-transformers/all-MiniLM-L6-v2')."""
        ...

    @property
    def dimensions(self) -> int:
        """Length of every vector the model produces."""
        ...

    def load(self) -> None:
        """Load model weights. Called once before the first encode.

        Raises:
            Exception: Any failure loading the model
        """
        ...

    def encode(self, text: str) -> list[float]:
        """Encode one text into a normalized vector.

        Empty or whitespace-only text yields a zero vector of the model's
        dimensionality without invoking the model.
        """
        ...


class EmbeddingProvider(Protocol):
    """Abstract protocol for embedding engines.

    Both the background worker pool and the in-process engine satisfy this
    contract, so callers never need to know where inference runs.
    """

    @property
    def name(self) -> str:
        """Provider name ('worker' or 'local')."""
        ...

    @property
    def model(self) -> str:
        """Name of the underlying embedding model."""
        ...

    @property
    def state(self) -> WorkerState:
        """Current lifecycle state."""
        ...

    def dimensions(self) -> int:
        """Embedding dimensions."""
        ...

    async def initialize(self) -> None:
        """Load the model, sharing one in-flight initialization between callers.

        Raises:
            EmbeddingError: If the model cannot be loaded
        """
        ...

    async def embed(self, text: str) -> list[float]:
        """Generate the embedding for a single text.

        Args:
            text: Text to embed

        Returns:
            Embedding vector of length ``dimensions()``

        Raises:
            EmbeddingError: If embedding generation fails
        """
        ...

    async def embed_batch(
        self,
        texts: list[str],
        on_progress: ProgressCallback | None = None,
    ) -> list[list[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed
            on_progress: Optional callback receiving (current, total)

        Returns:
            List of embedding vectors, one per input text, in input order

        Raises:
            EmbeddingError: If embedding generation fails
        """
        ...

    def similarity(self, a: list[float], b: list[float]) -> float:
        """Cosine similarity in [-1, 1].

        Raises:
            ValidationError: If the vectors have different lengths
        """
        ...

    async def shutdown(self) -> None:
        """Release the model and any background worker."""
        ...
