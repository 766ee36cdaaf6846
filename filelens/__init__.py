"""FileLens - Local semantic file search with retrieval-augmented answers."""

__version__ = "0.1.0"
__description__ = "Local semantic file search with retrieval-augmented answers"

# Import modules only when needed so that the CLI starts without loading models
__all__ = [
    "Chunker",
    "ContentExtractor",
    "MetricsRecorder",
]

def __getattr__(name: str):
    """Lazy import to avoid dependency issues during setup."""
    if name == "Chunker":
        from .chunker import Chunker
        return Chunker
    elif name == "ContentExtractor":
        from .extractor import ContentExtractor
        return ContentExtractor
    elif name == "MetricsRecorder":
        from .metrics import MetricsRecorder
        return MetricsRecorder
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
