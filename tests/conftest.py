"""Shared fixtures and fakes for FileLens tests."""

import hashlib
import math
import tempfile
import threading
from collections.abc import Generator
from pathlib import Path

import pytest

TEST_DIMENSIONS = 8


class FakeEmbeddingModel:
    """Deterministic bag-of-words model that needs no ML runtime.

    Each word is hashed into one of ``dimensions`` buckets and the counts are
    normalized, so texts sharing words have a high cosine similarity.
    """

    def __init__(
        self,
        dimensions: int = TEST_DIMENSIONS,
        fail_load: bool = False,
        crash_on: str | None = None,
        block: threading.Event | None = None,
    ):
        self.name = "fake-model"
        self.dimensions = dimensions
        self.fail_load = fail_load
        self.crash_on = crash_on
        self.block = block
        self.loaded = False
        self.encoded: list[str] = []

    def load(self) -> None:
        if self.fail_load:
            raise RuntimeError("weights missing")
        self.loaded = True

    def encode(self, text: str) -> list[float]:
        if self.block is not None:
            self.block.wait(timeout=5)
        if self.crash_on is not None and self.crash_on in text:
            raise SystemExit(3)
        self.encoded.append(text)
        return bag_of_words(text, self.dimensions)


def bag_of_words(text: str, dimensions: int = TEST_DIMENSIONS) -> list[float]:
    vector = [0.0] * dimensions
    for word in text.lower().split():
        bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % dimensions
        vector[bucket] += 1.0
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        return vector
    return [v / norm for v in vector]


def unit_vector(index: int, dimensions: int = TEST_DIMENSIONS) -> list[float]:
    vector = [0.0] * dimensions
    vector[index] = 1.0
    return vector


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_model() -> FakeEmbeddingModel:
    return FakeEmbeddingModel()


def create_test_file(directory: Path, filename: str, content: str | bytes) -> Path:
    """Create a test file with given content."""
    file_path = directory / filename
    if isinstance(content, bytes):
        file_path.write_bytes(content)
    else:
        file_path.write_text(content, encoding="utf-8")
    return file_path
