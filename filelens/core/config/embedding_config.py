"""
Embedding configuration for FileLens.

Selects the embedding model, its dimensionality and how inference is
isolated from the caller (a background worker thread, or in-process for
tests and small jobs).
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator


class EmbeddingConfig(BaseModel):
    """
    Embedding engine configuration.

    Environment Variable Examples:
        FILELENS_EMBEDDING__MODEL=sentence-transformers/all-MiniLM-L6-v2
        FILELENS_EMBEDDING__DIMENSIONS=384
        FILELENS_EMBEDDING__MODE=local
    """

    model: str = Field(
        default="sentence-transformers/all-MiniLM-L6-v2",
        description="sentence-transformers model name or local path"
    )

    dimensions: int = Field(
        default=384,
        ge=1,
        le=8192,
        description="Embedding dimensions produced by the model"
    )

    mode: Literal["worker", "local"] = Field(
        default="worker",
        description="Run inference in a background worker thread or in-process"
    )

    device: str | None = Field(
        default=None,
        description="Torch device for the model (uses library default if not set)"
    )

    progress_interval: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Emit a progress message every N embedded items"
    )

    yield_every: int = Field(
        default=100,
        ge=1,
        le=100000,
        description="Take a longer pause every N items of a batch"
    )

    local_batch_size: int = Field(
        default=4,
        ge=1,
        le=1024,
        description="Sub-batch size for in-process embedding"
    )

    shutdown_timeout: float = Field(
        default=5.0,
        gt=0,
        le=120,
        description="Seconds to wait for the worker to stop before giving up"
    )

    @field_validator("model")
    def validate_model(cls, v: str) -> str:
        """Reject blank model names."""
        if not v or not v.strip():
            raise ValueError("Embedding model name cannot be empty")
        return v.strip()
