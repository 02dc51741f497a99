from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from loguru import logger

from lod.config import slow_operation_ms

T = TypeVar("T")

_MAX_SAMPLES = 100
_KEEP_SAMPLES = 50


@dataclass
class PerformanceMonitor:
    """
    In-process counters for layer processing: timings and cache hit rate.
    """

    _times_ms: list[float] = field(default_factory=list, repr=False)
    _cache_hits: int = 0
    _cache_requests: int = 0

    def record_processing_time(self, ms: float) -> None:
        self._times_ms.append(float(ms))
        # Keep only recent measurements.
        if len(self._times_ms) > _MAX_SAMPLES:
            self._times_ms = self._times_ms[-_KEEP_SAMPLES:]

    def record_cache_hit(self) -> None:
        self._cache_hits += 1
        self._cache_requests += 1

    def record_cache_miss(self) -> None:
        self._cache_requests += 1

    def get_metrics(self) -> dict[str, Any]:
        avg = sum(self._times_ms) / len(self._times_ms) if self._times_ms else 0.0
        return {
            "cacheHitRate": (self._cache_hits / self._cache_requests) if self._cache_requests else 0.0,
            "averageProcessingTimeMs": avg,
            "samples": len(self._times_ms),
            "cacheRequests": self._cache_requests,
        }

    def reset(self) -> None:
        self._times_ms = []
        self._cache_hits = 0
        self._cache_requests = 0


def measure_performance(
    fn: Callable[[], T],
    name: str | None = None,
    *,
    monitor: PerformanceMonitor | None = None,
) -> tuple[T, float]:
    """
    Run `fn`, returning (result, elapsed milliseconds). Slow named operations are logged.
    """
    start = time.perf_counter()
    result = fn()
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    if monitor is not None:
        monitor.record_processing_time(elapsed_ms)
    if name and elapsed_ms > slow_operation_ms():
        logger.warning(f'Slow operation "{name}" took {elapsed_ms:.2f}ms')
    return result, elapsed_ms
