"""FileLens TextChunk Domain Model - A bounded window of a file's extracted text.

A TextChunk is the smallest retrievable unit. The chunker produces them in
order for one extraction of one file; ``chunk_index`` is unique and
contiguous within that extraction and, together with the file path, forms
the persisted record id.
"""

import math
from dataclasses import dataclass
from typing import Any, Dict

from ..exceptions import ValidationError

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Approximate token count as ceil(chars / 4)."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


@dataclass(frozen=True)
class TextChunk:
    """Domain model representing one window of extracted text.

    Attributes:
        text: Chunk content
        start_char: Offset of the first character in the extracted text
        end_char: Offset one past the last character (exclusive)
        chunk_index: Zero-based sequence index within the file
    """

    text: str
    start_char: int
    end_char: int
    chunk_index: int

    def __post_init__(self):
        """Validate chunk model after initialization."""
        self._validate()

    def _validate(self) -> None:
        """Validate chunk model attributes."""
        if not self.text:
            raise ValidationError("text", self.text, "Chunk text cannot be empty")

        if self.start_char < 0:
            raise ValidationError("start_char", self.start_char, "Start offset cannot be negative")

        if self.end_char < self.start_char:
            raise ValidationError(
                "char_range",
                f"{self.start_char}-{self.end_char}",
                "Start offset cannot be greater than end offset"
            )

        if self.chunk_index < 0:
            raise ValidationError("chunk_index", self.chunk_index, "Chunk index cannot be negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TextChunk":
        """Create a TextChunk from a dictionary.

        Args:
            data: Dictionary with text, start_char, end_char and chunk_index

        Returns:
            TextChunk created from dictionary data

        Raises:
            ValidationError: If required fields are missing or invalid
        """
        try:
            return cls(
                text=data["text"],
                start_char=int(data["start_char"]),
                end_char=int(data["end_char"]),
                chunk_index=int(data["chunk_index"]),
            )
        except KeyError as e:
            raise ValidationError(str(e.args[0]), None, "Field is required")
        except (ValueError, TypeError) as e:
            raise ValidationError("data", data, f"Invalid data format: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert TextChunk to dictionary."""
        return {
            "text": self.text,
            "start_char": self.start_char,
            "end_char": self.end_char,
            "chunk_index": self.chunk_index,
        }

    @property
    def char_count(self) -> int:
        """Number of characters in the chunk."""
        return len(self.text)

    @property
    def token_estimate(self) -> int:
        """Approximate token count for the chunk."""
        return estimate_tokens(self.text)
