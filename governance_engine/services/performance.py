"""
Calculation timing collectors.

Evaluation entry points accept a collector argument instead of writing to a
process-wide monitor.  ``NullMetricsCollector`` discards samples;
``RingBufferMetricsCollector`` keeps the most recent ``max_samples`` in memory.
Collectors never influence evaluation results.

Usage:
    from governance_engine.services.performance import RingBufferMetricsCollector, timed

    collector = RingBufferMetricsCollector()
    with timed(collector, "assess_use_case", use_case_id="uc-1"):
        ...
    collector.get_stats("assess_use_case")
"""

from __future__ import annotations

import threading
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator, Protocol

DEFAULT_MAX_SAMPLES = 100


@dataclass(frozen=True)
class PerformanceMetric:
    operation: str
    duration_ms: float
    timestamp: datetime
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "duration_ms": round(self.duration_ms, 3),
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class MetricsCollector(Protocol):
    def record(self, operation: str, duration_ms: float, metadata: dict | None = None) -> None:
        ...


class NullMetricsCollector:
    """Collector that drops every sample."""

    def record(self, operation: str, duration_ms: float, metadata: dict | None = None) -> None:
        return None


class RingBufferMetricsCollector:
    """Bounded in-memory sample buffer (oldest samples evicted first)."""

    def __init__(self, max_samples: int = DEFAULT_MAX_SAMPLES) -> None:
        if max_samples < 1:
            raise ValueError("max_samples must be at least 1")
        self.max_samples = max_samples
        self._samples: deque[PerformanceMetric] = deque(maxlen=max_samples)
        self._lock = threading.Lock()

    def record(self, operation: str, duration_ms: float, metadata: dict | None = None) -> None:
        metric = PerformanceMetric(
            operation=operation,
            duration_ms=duration_ms,
            timestamp=datetime.now(timezone.utc),
            metadata=dict(metadata or {}),
        )
        with self._lock:
            self._samples.append(metric)

    def get_stats(self, operation: str) -> dict | None:
        """count / avg / min / max / recent duration (ms) for one operation."""
        with self._lock:
            durations = [m.duration_ms for m in self._samples if m.operation == operation]
        if not durations:
            return None
        return {
            "count": len(durations),
            "avg_duration_ms": sum(durations) / len(durations),
            "min_duration_ms": min(durations),
            "max_duration_ms": max(durations),
            "recent_duration_ms": durations[-1],
        }

    def get_all_metrics(self) -> list[PerformanceMetric]:
        with self._lock:
            return list(self._samples)

    def clear(self) -> None:
        with self._lock:
            self._samples.clear()

    def __len__(self) -> int:
        return len(self._samples)


@contextmanager
def timed(collector: MetricsCollector | None, operation: str, **metadata) -> Iterator[None]:
    """Time the enclosed block and record it on ``collector``.

    A failing block is recorded as ``<operation>_error`` with the exception
    message, then the exception propagates.
    """
    if collector is None:
        yield
        return

    start = time.perf_counter()
    try:
        yield
    except Exception as exc:
        duration_ms = (time.perf_counter() - start) * 1000
        collector.record(f"{operation}_error", duration_ms, {**metadata, "error": str(exc)})
        raise
    duration_ms = (time.perf_counter() - start) * 1000
    collector.record(operation, duration_ms, metadata)
