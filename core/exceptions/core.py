"""FileLens Core Exceptions - Core exception classes for error handling.

Every FileLens error carries a readable message plus an optional context
mapping (file paths, request ids, status codes) that is appended when the
error is printed or logged.
"""

from typing import Optional, Any, Dict


class FileLensError(Exception):
    """Base exception for all FileLens errors."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} (context: {details})"

    def add_context(self, key: str, value: Any) -> "FileLensError":
        """Attach one more context entry and return the error for chaining."""
        self.context[key] = value
        return self


def _labelled(label: str, reason: Optional[str], **fields: Optional[str]) -> str:
    """Render ``Label (k=v, ...): reason`` skipping empty fields."""
    parts = [f"{key}={value}" for key, value in fields.items() if value]
    head = f"{label} ({', '.join(parts)})" if parts else label
    return f"{head}: {reason}" if reason else head


class ValidationError(FileLensError):
    """Raised when input has the wrong shape.

    Count mismatches between chunks and embeddings, vectors of the wrong
    dimensionality and bad chunking parameters all end up here, before
    anything is written.
    """

    def __init__(self, field: str, value: Any, reason: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(f"Invalid {field}: {reason}", context)
        self.field = field
        self.value = value
        self.reason = reason


class EmbeddingError(FileLensError):
    """Raised when a model cannot be loaded or fails to encode."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        operation: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        message = _labelled("Embedding error", reason, provider=provider, model=model, operation=operation)
        super().__init__(message, context)
        self.provider = provider
        self.model = model
        self.operation = operation
        self.reason = reason


class WorkerError(EmbeddingError):
    """The background worker could not serve a request.

    Raised for a failed initialization, for requests made while the pool is
    in the failed state, and for errors the worker reports per request.
    """

    def __init__(self, reason: str, request_id: Optional[int] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(provider="worker", reason=reason, context=context)
        self.request_id = request_id
        if request_id is not None:
            self.add_context("request_id", request_id)


class WorkerExitedError(WorkerError):
    """Delivered to every pending request when the worker dies."""

    def __init__(self, exit_code: int, request_id: Optional[int] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(f"Worker exited with code {exit_code}", request_id, context)
        self.exit_code = exit_code


class DatabaseError(FileLensError):
    """Wraps a DuckDB failure with the store operation and its location."""

    def __init__(
        self,
        operation: Optional[str] = None,
        table: Optional[str] = None,
        reason: Optional[str] = None,
        path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        message = _labelled("Database error", reason, operation=operation, table=table)
        super().__init__(message, context, cause)
        self.operation = operation
        self.table = table
        self.reason = reason
        self.path = path
        if path:
            self.add_context("path", path)


class InferenceError(FileLensError):
    """The generation server rejected the request or could not be reached.

    ``status`` and ``body`` are set when the server answered with a non-2xx
    response; transport failures only carry ``reason``.
    """

    def __init__(
        self,
        status: Optional[int] = None,
        body: Optional[str] = None,
        reason: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        if status is not None:
            message = f"Ollama error ({status}): {body or ''}".rstrip()
        else:
            message = _labelled("Ollama error", reason)
        super().__init__(message, context, cause)
        self.status = status
        self.body = body
        self.reason = reason


class ConfigurationError(FileLensError):
    """Settings could not be loaded or failed validation."""

    def __init__(self, config_key: Optional[str] = None, reason: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        label = f"Configuration error for '{config_key}'" if config_key else "Configuration error"
        super().__init__(_labelled(label, reason), context)
        self.config_key = config_key
        self.reason = reason
