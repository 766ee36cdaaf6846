"""LLM providers package for FileLens - inference server clients."""

from .ollama_client import NDJSONDecoder, OllamaClient, build_prompt

__all__ = [
    "OllamaClient",
    "NDJSONDecoder",
    "build_prompt",
]
