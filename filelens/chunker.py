"""Chunker module for FileLens - splits extracted text into overlapping windows."""

from loguru import logger

from core.exceptions import ValidationError
from core.models import TextChunk
from core.models.chunk import CHARS_PER_TOKEN, estimate_tokens


class Chunker:
    """Split text into token-bounded character windows that overlap.

    The window length is ``chunk_size * chars_per_token`` characters and
    consecutive windows share ``int(window * overlap_ratio)`` characters so
    that a passage straddling a boundary is still retrievable from at least
    one chunk.
    """

    def __init__(
        self,
        chunk_size: int = 500,
        overlap_ratio: float = 0.1,
        chars_per_token: int = CHARS_PER_TOKEN,
    ):
        """Initialize the chunker.

        Args:
            chunk_size: Target chunk size in estimated tokens
            overlap_ratio: Fraction of the window shared with the next chunk
            chars_per_token: Characters per estimated token

        Raises:
            ValidationError: If the parameters would not make forward progress
        """
        if chunk_size <= 0:
            raise ValidationError("chunk_size", chunk_size, "Chunk size must be positive")
        if chars_per_token <= 0:
            raise ValidationError("chars_per_token", chars_per_token, "Characters per token must be positive")
        if overlap_ratio < 0:
            raise ValidationError("overlap_ratio", overlap_ratio, "Overlap ratio cannot be negative")

        self.chunk_size = chunk_size
        self.overlap_ratio = overlap_ratio
        self.chars_per_token = chars_per_token
        self.window = chunk_size * chars_per_token
        self.overlap = int(self.window * overlap_ratio)

        if self.overlap >= self.window:
            raise ValidationError(
                "overlap_ratio",
                overlap_ratio,
                f"Overlap ({self.overlap} chars) must be smaller than the chunk window ({self.window} chars)"
            )

    @property
    def stride(self) -> int:
        return self.window - self.overlap

    def chunk(self, text: str) -> list[TextChunk]:
        """Split text into ordered, overlapping chunks.

        Args:
            text: Extracted file text

        Returns:
            Chunks with contiguous indices starting at 0; empty for blank text
        """
        if not text or not text.strip():
            return []

        length = len(text)
        if length <= self.window:
            return [TextChunk(text=text, start_char=0, end_char=length, chunk_index=0)]

        chunks: list[TextChunk] = []
        start = 0
        while True:
            end = min(start + self.window, length)
            window_text = text[start:end]
            if window_text.strip():
                chunks.append(TextChunk(
                    text=window_text,
                    start_char=start,
                    end_char=end,
                    chunk_index=len(chunks),
                ))
            if end >= length:
                break
            start += self.stride

        logger.debug(f"Chunked {length} chars into {len(chunks)} chunks (window={self.window}, overlap={self.overlap})")
        return chunks

    def metadata_chunk(self, text: str) -> TextChunk:
        """Single chunk for a file that only has a metadata description."""
        return TextChunk(text=text, start_char=0, end_char=len(text), chunk_index=0)

    def estimate_tokens(self, text: str) -> int:
        return estimate_tokens(text)
