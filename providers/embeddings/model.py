"""Embedding model implementations and vector math for FileLens."""

import numpy as np
from loguru import logger

from core.exceptions import EmbeddingError, ValidationError

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_DIMENSIONS = 384


class SentenceTransformerModel:
    """Sentence-transformers model producing mean-pooled, normalized vectors.

    The library is imported in ``load()`` so that constructing the model
    (and importing this module) stays cheap; the heavy ML runtime is only
    pulled in on the thread that actually runs inference.
    """

    def __init__(
        self,
        model_name: str = DEFAULT_MODEL,
        dimensions: int = DEFAULT_DIMENSIONS,
        device: str | None = None,
    ):
        self._model_name = model_name
        self._dimensions = dimensions
        self._device = device
        self._model = None

    @property
    def name(self) -> str:
        return self._model_name

    @property
    def dimensions(self) -> int:
        return self._dimensions

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        if self._model is not None:
            return

        from sentence_transformers import SentenceTransformer

        logger.info(f"Loading embedding model {self._model_name}")
        model = SentenceTransformer(self._model_name, device=self._device)

        actual = model.get_sentence_embedding_dimension()
        if actual is not None and actual != self._dimensions:
            raise EmbeddingError(
                provider="sentence-transformers",
                model=self._model_name,
                operation="load",
                reason=f"Model produces {actual}-dimensional vectors, expected {self._dimensions}"
            )

        self._model = model
        logger.info(f"Embedding model {self._model_name} loaded ({self._dimensions} dims)")

    def encode(self, text: str) -> list[float]:
        if not text or not text.strip():
            return zero_vector(self._dimensions)

        if self._model is None:
            self.load()

        vector = self._model.encode(
            text,
            normalize_embeddings=True,
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        return vector.tolist()


def zero_vector(dimensions: int) -> list[float]:
    return [0.0] * dimensions


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors, clamped to [-1, 1].

    Args:
        a: First vector
        b: Second vector

    Returns:
        Similarity score; 0.0 if either vector has zero norm

    Raises:
        ValidationError: If the vectors have different lengths
    """
    if len(a) != len(b):
        raise ValidationError(
            "embedding",
            (len(a), len(b)),
            f"Embedding dimensions don't match: {len(a)} vs {len(b)}"
        )

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    return max(-1.0, min(1.0, score))
