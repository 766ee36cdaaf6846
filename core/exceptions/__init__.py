"""FileLens Core Exceptions Package - Core exception classes for error handling.

The exception hierarchy is designed to:
- Separate shape/validation failures from runtime failures
- Carry operation and path context for store and worker failures
- Surface inference server status and body text unchanged
"""

from .core import (
    ConfigurationError,
    DatabaseError,
    EmbeddingError,
    FileLensError,
    InferenceError,
    ValidationError,
    WorkerError,
    WorkerExitedError,
)

__all__ = [
    # Base exception
    "FileLensError",

    # Domain-specific exceptions
    "ValidationError",
    "EmbeddingError",
    "WorkerError",
    "WorkerExitedError",
    "DatabaseError",
    "InferenceError",
    "ConfigurationError",
]
