"""Metrics collection for the JSON cache layers.

Every cache call records an operation, an outcome class and a duration.
Outcome classes are ``hit | miss | error | unmarshal_error`` for reads and
``success | error`` for writes and deletes.
"""

from __future__ import annotations

import time
from collections import Counter, deque
from dataclasses import dataclass, field
from enum import StrEnum
from statistics import mean, median
from typing import Any


class CacheOperation(StrEnum):
    """Cache operations that emit metrics."""

    GET = "get"
    SET = "set"
    DELETE = "delete"
    DELETE_PATTERN = "delete_pattern"


class CacheOutcome(StrEnum):
    """Outcome class of a cache operation."""

    HIT = "hit"
    MISS = "miss"
    ERROR = "error"
    UNMARSHAL_ERROR = "unmarshal_error"
    SUCCESS = "success"


@dataclass(slots=True)
class LatencyMetric:
    """Single latency measurement."""

    operation: CacheOperation
    outcome: CacheOutcome
    duration_ms: float
    timestamp: float
    key: str | None = None


def _percentile(samples: list[float], fraction: float) -> float:
    if not samples:
        return 0.0
    ordered = sorted(samples)
    index = int(fraction * len(ordered))
    return ordered[min(index, len(ordered) - 1)]


@dataclass
class CacheMetrics:
    """Outcome counters plus a bounded ring of latency samples."""

    sample_size: int = 1000
    counts: Counter[tuple[CacheOperation, CacheOutcome]] = field(default_factory=Counter)
    latency_samples: deque[LatencyMetric] = field(init=False)

    def __post_init__(self) -> None:
        self.latency_samples = deque(maxlen=self.sample_size)

    def record(self, operation: CacheOperation, outcome: CacheOutcome, duration_ms: float, key: str | None = None) -> None:
        """Record one cache call.

        Args:
            operation: Operation that ran
            outcome: Outcome class
            duration_ms: Wall time of the call in milliseconds
            key: Cache key or pattern involved

        """
        self.counts[operation, outcome] += 1
        self.latency_samples.append(
            LatencyMetric(operation=operation, outcome=outcome, duration_ms=duration_ms, timestamp=time.time(), key=key)
        )

    def count(self, operation: CacheOperation, outcome: CacheOutcome) -> int:
        """Return how many times ``operation`` ended with ``outcome``."""
        return self.counts[operation, outcome]

    def get_hit_ratio(self) -> float:
        """Calculate the read hit ratio.

        Returns:
            Hits divided by (hits + misses), or 0.0 before any read

        """
        hits = self.count(CacheOperation.GET, CacheOutcome.HIT)
        total = hits + self.count(CacheOperation.GET, CacheOutcome.MISS)
        return hits / total if total else 0.0

    def get_error_count(self) -> int:
        """Total error and unmarshal-error outcomes across operations."""
        return sum(
            value for (_, outcome), value in self.counts.items() if outcome in {CacheOutcome.ERROR, CacheOutcome.UNMARSHAL_ERROR}
        )

    def _durations(self, operation: CacheOperation | None) -> list[float]:
        return [sample.duration_ms for sample in self.latency_samples if operation is None or sample.operation == operation]

    def get_average_latency(self, operation: CacheOperation | None = None) -> float:
        """Average latency in milliseconds (all operations when ``operation`` is None)."""
        samples = self._durations(operation)
        return mean(samples) if samples else 0.0

    def get_median_latency(self, operation: CacheOperation | None = None) -> float:
        """Median latency in milliseconds."""
        samples = self._durations(operation)
        return median(samples) if samples else 0.0

    def get_p95_latency(self, operation: CacheOperation | None = None) -> float:
        """95th percentile latency in milliseconds."""
        return _percentile(self._durations(operation), 0.95)

    def reset(self) -> None:
        """Drop all counters and samples."""
        self.counts.clear()
        self.latency_samples.clear()

    def to_dict(self) -> dict[str, Any]:
        """Convert metrics to a JSON-ready dictionary."""
        return {
            "counts": {f"{operation}.{outcome}": value for (operation, outcome), value in sorted(self.counts.items())},
            "hit_ratio": self.get_hit_ratio(),
            "errors": self.get_error_count(),
            "average_latency_ms": self.get_average_latency(),
            "median_latency_ms": self.get_median_latency(),
            "p95_latency_ms": self.get_p95_latency(),
            "latency_by_operation": {
                operation.value: {
                    "avg_ms": self.get_average_latency(operation),
                    "p95_ms": self.get_p95_latency(operation),
                }
                for operation in CacheOperation
            },
        }


def elapsed_ms(start: float) -> float:
    """Milliseconds elapsed since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - start) * 1000


__all__ = [
    "CacheMetrics",
    "CacheOperation",
    "CacheOutcome",
    "LatencyMetric",
    "elapsed_ms",
]
