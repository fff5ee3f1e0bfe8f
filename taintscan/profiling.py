"""
Timing utilities for taintscan scans.

Each scan collects per-phase timings (parsing, catalog loading, one entry
per verifier) plus plain counters in a PerformanceMetrics instance, which
ends up on ScanResult.metrics.

Usage:
    metrics = PerformanceMetrics()

    with profile("parse", metrics):
        builder.build_from_files(files)

    metrics.increment("units", len(files))
    logger.debug(metrics.summary())
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator

logger = logging.getLogger(__name__)


@dataclass
class AggregatedMetric:
    """Aggregated statistics for a named phase."""
    name: str
    count: int = 0
    total_seconds: float = 0.0
    min_seconds: float = float('inf')
    max_seconds: float = 0.0

    @property
    def avg_seconds(self) -> float:
        return self.total_seconds / self.count if self.count > 0 else 0.0

    @property
    def total_ms(self) -> float:
        return self.total_seconds * 1000

    def add(self, duration: float) -> None:
        self.count += 1
        self.total_seconds += duration
        self.min_seconds = min(self.min_seconds, duration)
        self.max_seconds = max(self.max_seconds, duration)

    def __str__(self) -> str:
        if self.count == 0:
            return f"{self.name}: no measurements"
        return (
            f"{self.name}: {self.count} run(s), "
            f"total={self.total_ms:.2f}ms, "
            f"avg={self.avg_seconds * 1000:.2f}ms, "
            f"max={self.max_seconds * 1000:.2f}ms"
        )


class PerformanceMetrics:
    """
    Phase timings and counters of one scanner.

    Thread-safe so that a cancelling thread can read the numbers while a
    scan is running.
    """

    def __init__(self) -> None:
        self._metrics: Dict[str, AggregatedMetric] = {}
        self._counters: Dict[str, int] = {}
        self._lock = threading.Lock()

    def record(self, name: str, duration: float) -> None:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = AggregatedMetric(name=name)
            metric.add(duration)

    def increment(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + amount

    def reset(self) -> None:
        with self._lock:
            self._metrics.clear()
            self._counters.clear()

    def summary(self) -> str:
        """Generate a summary of all metrics."""
        if not self._metrics and not self._counters:
            return "No metrics collected"

        lines = ["Performance Metrics:", "-" * 60]
        for metric in sorted(self._metrics.values(), key=lambda m: m.total_seconds, reverse=True):
            lines.append(str(metric))
        for name, value in sorted(self._counters.items()):
            lines.append(f"{name}: {value}")
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Export metrics as dictionary."""
        data: Dict[str, Dict[str, Any]] = {
            name: {
                "count": m.count,
                "total_ms": m.total_ms,
                "max_ms": m.max_seconds * 1000 if m.count > 0 else 0,
            }
            for name, m in self._metrics.items()
        }
        if self._counters:
            data["counters"] = dict(self._counters)
        return data


@contextmanager
def profile(name: str, metrics: PerformanceMetrics) -> Iterator[None]:
    """Time a block and log its duration at debug level."""
    start = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - start
        metrics.record(name, duration)
        logger.debug(f"{name} took {duration * 1000:.2f}ms")
