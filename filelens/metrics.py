"""Latency metrics for FileLens pipeline operations.

A MetricsRecorder keeps a bounded window of recent samples per operation and
derives avg/p95/min/max on demand. It is an ordinary object passed to the
services that use it, so independent instances never share state.
"""

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterator, Optional

from loguru import logger


class MetricOperation(Enum):
    """Operation kinds with recorded latency."""

    EMBED_SINGLE = "embed_single"
    EMBED_BATCH = "embed_batch"
    INDEX_FILE = "index_file"
    VECTOR_SEARCH = "vector_search"
    VECTOR_ADD = "vector_add"
    RETRIEVAL = "retrieval"
    LLM_QUERY = "llm_query"
    PDF_EXTRACT = "pdf_extract"


@dataclass(frozen=True)
class MetricStats:
    """Summary of the retained samples for one operation (milliseconds)."""

    avg: float
    p95: float
    count: int
    min: float
    max: float


class MetricsRecorder:
    """Records latency samples per operation plus simple named counters."""

    def __init__(self, max_samples: int = 100):
        self.max_samples = max_samples
        self._samples: Dict[MetricOperation, deque[float]] = {}
        self._counters: Dict[str, int] = {}

    def record(self, operation: MetricOperation, duration_ms: float) -> None:
        """Add one latency sample, evicting the oldest beyond max_samples."""
        samples = self._samples.get(operation)
        if samples is None:
            samples = deque(maxlen=self.max_samples)
            self._samples[operation] = samples
        samples.append(duration_ms)

    def start_timer(self, operation: MetricOperation) -> Callable[[], float]:
        """Start timing an operation.

        Returns:
            A ``stop`` callable that records the sample and returns the
            elapsed milliseconds
        """
        started = time.perf_counter()

        def stop() -> float:
            elapsed = (time.perf_counter() - started) * 1000
            self.record(operation, elapsed)
            return elapsed

        return stop

    @contextmanager
    def timer(self, operation: MetricOperation) -> Iterator[None]:
        """Context manager recording the duration of its block, even on error."""
        stop = self.start_timer(operation)
        try:
            yield
        finally:
            stop()

    def get_stats(self, operation: MetricOperation) -> Optional[MetricStats]:
        """Latency summary for an operation, or None when nothing was recorded."""
        samples = self._samples.get(operation)
        if not samples:
            return None

        ordered = sorted(samples)
        count = len(ordered)
        p95_index = min(int(count * 0.95), count - 1)
        return MetricStats(
            avg=round(sum(ordered) / count, 2),
            p95=round(ordered[p95_index], 2),
            count=count,
            min=round(ordered[0], 2),
            max=round(ordered[-1], 2),
        )

    def get_all_stats(self) -> Dict[str, MetricStats]:
        """Summaries for every operation with at least one sample."""
        result = {}
        for operation in MetricOperation:
            stats = self.get_stats(operation)
            if stats is not None:
                result[operation.value] = stats
        return result

    def report(self) -> str:
        """Human-readable report of all latency stats and counters."""
        lines = ["=== FileLens Metrics Report ==="]
        all_stats = self.get_all_stats()
        if not all_stats:
            lines.append("No metrics recorded")
        for name, stats in all_stats.items():
            lines.append(
                f"{name}: avg={stats.avg}ms p95={stats.p95}ms "
                f"min={stats.min}ms max={stats.max}ms count={stats.count}"
            )
        if self._counters:
            lines.append("Counters:")
            for name, value in sorted(self._counters.items()):
                lines.append(f"  {name}: {value}")
        return "\n".join(lines)

    def log_report(self) -> None:
        logger.info(self.report())

    def clear(self) -> None:
        self._samples.clear()
        self._counters.clear()

    def increment_counter(self, name: str, amount: int = 1) -> int:
        self._counters[name] = self._counters.get(name, 0) + amount
        return self._counters[name]

    def get_counter(self, name: str) -> int:
        return self._counters.get(name, 0)
