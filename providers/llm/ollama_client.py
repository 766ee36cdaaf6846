"""Ollama inference client for FileLens - streams answers from a local model server."""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any, Optional

import aiohttp
from loguru import logger

from core.exceptions import InferenceError
from core.models import RetrievalResult
from filelens.metrics import MetricOperation, MetricsRecorder

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3.2"
PROBE_ENDPOINTS = ("/api/tags", "/api/version", "/")

SYSTEM_PROMPT = """You are an intelligent file system assistant with access to the user's indexed files. Your role is to help users understand, navigate, and work with their file contents.

CONTEXT INTERPRETATION:
- When context includes actual document text, answer in detail from that content
- When context only shows file metadata (name, path, type), say that the file exists but its content could not be extracted (it may be a scanned PDF or an unsupported format)

RESPONSE RULES:
1. Answer ONLY from the provided context; never invent file contents
2. Cite file names when referencing information
3. If the context is insufficient, say what information is missing
4. Be concise but thorough"""


def build_prompt(user_text: str, retrieval: RetrievalResult) -> str:
    """User prompt carrying the retrieved context, or a note that there is none."""
    if not retrieval.context:
        return (
            f"Question: {user_text}\n\n"
            "Note: No relevant files were found in the index. "
            "Please index some files first."
        )

    return (
        "Based on the following context from your files:\n\n"
        f"---\n{retrieval.context}\n---\n\n"
        f"Question: {user_text}\n\n"
        "Please provide a clear answer based on the context above. "
        "If the context doesn't contain relevant information, say so explicitly."
    )


class NDJSONDecoder:
    """Incremental decoder for newline-delimited JSON.

    Network chunks can split a line anywhere, so incomplete trailing data is
    buffered until the next chunk arrives. Lines that are not valid JSON
    objects are skipped.
    """

    def __init__(self):
        self._buffer = b""

    def feed(self, data: bytes | str) -> list[dict[str, Any]]:
        if isinstance(data, str):
            data = data.encode("utf-8")
        # Split on bytes so a multi-byte character cut by the network stays intact.
        self._buffer += data
        *lines, self._buffer = self._buffer.split(b"\n")
        return [obj for obj in (self._parse(line) for line in lines) if obj is not None]

    def flush(self) -> list[dict[str, Any]]:
        remaining, self._buffer = self._buffer, b""
        obj = self._parse(remaining)
        return [obj] if obj is not None else []

    @staticmethod
    def _parse(raw: bytes) -> Optional[dict[str, Any]]:
        line = raw.decode("utf-8", errors="replace").strip()
        if not line:
            return None
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping invalid stream line: {line[:80]}")
            return None
        return obj if isinstance(obj, dict) else None


def fragment_of(obj: dict[str, Any]) -> str:
    """Text increment carried by one stream object (generate or chat format)."""
    text = obj.get("response")
    if not text:
        message = obj.get("message")
        if isinstance(message, dict):
            text = message.get("content")
    return text or ""


class OllamaClient:
    """Client for a locally hosted Ollama server."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 120,
        probe_timeout: float = 5.0,
        system_prompt: str = SYSTEM_PROMPT,
        metrics: Optional[MetricsRecorder] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._probe_timeout = probe_timeout
        self._system_prompt = system_prompt
        self._metrics = metrics

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    def _payload(
        self,
        user_text: str,
        retrieval: RetrievalResult,
        model: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
    ) -> dict[str, Any]:
        return {
            "model": model or self._model,
            "prompt": build_prompt(user_text, retrieval),
            "system": self._system_prompt,
            "stream": True,
            "options": {
                "temperature": self._temperature if temperature is None else temperature,
                "num_predict": self._max_tokens if max_tokens is None else max_tokens,
            },
        }

    async def query(
        self,
        user_text: str,
        retrieval: RetrievalResult,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        """Stream the model's answer as text fragments.

        The stream is finite and cannot be restarted. Closing the generator
        early closes the HTTP connection, which makes Ollama stop generating.

        Args:
            user_text: The user's question
            retrieval: Context assembled for the question
            model: Override the configured model
            temperature: Override the configured temperature
            max_tokens: Override the configured generation limit

        Yields:
            Text fragments in arrival order

        Raises:
            InferenceError: On a non-success status (with status and body) or transport failure
        """
        payload = self._payload(user_text, retrieval, model, temperature, max_tokens)
        url = f"{self._base_url}/api/generate"
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._probe_timeout, sock_read=self._timeout)
        stop_timer = self._metrics.start_timer(MetricOperation.LLM_QUERY) if self._metrics is not None else None
        fragments = 0

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(url, json=payload) as response:
                    if response.status < 200 or response.status >= 300:
                        body = await response.text()
                        logger.error(f"Ollama returned {response.status} for {payload['model']}")
                        raise InferenceError(status=response.status, body=body)

                    decoder = NDJSONDecoder()
                    done = False
                    async for data in response.content.iter_any():
                        for obj in decoder.feed(data):
                            if obj.get("error"):
                                raise InferenceError(reason=str(obj["error"]))
                            text = fragment_of(obj)
                            if text:
                                fragments += 1
                                yield text
                            if obj.get("done"):
                                done = True
                                break
                        if done:
                            break

                    if not done:
                        for obj in decoder.flush():
                            text = fragment_of(obj)
                            if text:
                                fragments += 1
                                yield text
        except aiohttp.ClientError as e:
            logger.error(f"Ollama request to {url} failed: {e}")
            raise InferenceError(reason=f"Request failed: {e}", cause=e)
        finally:
            if stop_timer is not None:
                stop_timer()
            logger.debug(f"Ollama stream finished after {fragments} fragments")

    async def query_full(
        self,
        user_text: str,
        retrieval: RetrievalResult,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Drain the stream and return the whole answer."""
        parts = []
        async for fragment in self.query(user_text, retrieval, model, temperature, max_tokens):
            parts.append(fragment)
        return "".join(parts)

    async def check_connection(self) -> bool:
        """True if any probe endpoint answers with a success status."""
        timeout = aiohttp.ClientTimeout(total=self._probe_timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            for endpoint in PROBE_ENDPOINTS:
                url = f"{self._base_url}{endpoint}"
                try:
                    async with session.get(url) as response:
                        if response.status == 200:
                            logger.debug(f"Ollama reachable at {url}")
                            return True
                        logger.debug(f"Ollama probe {url} returned {response.status}")
                except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                    logger.debug(f"Ollama probe {url} failed: {e}")
        logger.warning(f"Ollama not reachable at {self._base_url}")
        return False

    async def list_models(self) -> list[str]:
        """Installed model names, or [] if the server cannot be reached."""
        timeout = aiohttp.ClientTimeout(total=self._probe_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(f"{self._base_url}/api/tags") as response:
                    if response.status != 200:
                        return []
                    data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.debug(f"Listing Ollama models failed: {e}")
            return []

        models = data.get("models") if isinstance(data, dict) else None
        return [m["name"] for m in models or [] if isinstance(m, dict) and "name" in m]

    async def has_model(self, model_name: str) -> bool:
        """Substring match so 'llama3.2' matches 'llama3.2:latest'."""
        return any(model_name in name for name in await self.list_models())
