"""
Query Metrics Collection.

Per-query latency histogram (HDR, microsecond resolution) plus the counters
a benchmark report needs:
- iteration, warmup, and error counts
- documents returned / examined
- plan text and index-usage label
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from hdrh.histogram import HdrHistogram

logger = structlog.get_logger(__name__)

# 1 microsecond to 60 seconds at 3 significant digits
HISTOGRAM_LOWEST_US = 1
HISTOGRAM_HIGHEST_US = 60_000_000
HISTOGRAM_SIGNIFICANT_FIGURES = 3

MAX_ERROR_MESSAGES = 10


def _new_histogram() -> HdrHistogram:
    return HdrHistogram(HISTOGRAM_LOWEST_US, HISTOGRAM_HIGHEST_US, HISTOGRAM_SIGNIFICANT_FIGURES)


@dataclass
class QueryMetrics:
    """Metrics for one benchmarked query."""

    query_name: str
    collection: str
    description: str = ""

    iterations: int = 0
    warmup_iterations: int = 0
    successful_iterations: int = 0
    errors: int = 0

    total_documents_returned: int = 0
    total_documents_examined: int = 0
    total_latency_us: int = 0

    index_used: str | None = None
    explain_plan: str | None = None
    expected_results: int | None = None
    aborted_reason: str | None = None
    error_messages: list[str] = field(default_factory=list)

    _histogram: HdrHistogram = field(default_factory=_new_histogram, repr=False)

    def record_latency(self, latency_ms: float) -> None:
        """Record one successful iteration's latency."""
        latency_us = int(round(latency_ms * 1000))
        latency_us = min(max(latency_us, HISTOGRAM_LOWEST_US), HISTOGRAM_HIGHEST_US)
        self._histogram.record_value(latency_us)
        self.total_latency_us += latency_us
        self.successful_iterations += 1

    def record_documents(self, returned: int, examined: int) -> None:
        self.total_documents_returned += returned
        self.total_documents_examined += examined

    def record_error(self, message: str | None = None) -> None:
        self.errors += 1
        if message and len(self.error_messages) < MAX_ERROR_MESSAGES:
            self.error_messages.append(message)

    def reset(self) -> None:
        """Discard everything measured so far."""
        self._histogram.reset()
        self.successful_iterations = 0
        self.errors = 0
        self.total_documents_returned = 0
        self.total_documents_examined = 0
        self.total_latency_us = 0
        self.error_messages.clear()

    # =========================================================================
    # Derived statistics (all zero when nothing succeeded)
    # =========================================================================

    @property
    def sample_count(self) -> int:
        return self._histogram.get_total_count()

    def latency_at_percentile(self, percentile: float) -> float:
        """Latency in milliseconds at a percentile (0-100)."""
        if self.sample_count == 0:
            return 0.0
        return self._histogram.get_value_at_percentile(percentile) / 1000.0

    @property
    def avg_latency_ms(self) -> float:
        if self.sample_count == 0:
            return 0.0
        return self._histogram.get_mean_value() / 1000.0

    @property
    def min_latency_ms(self) -> float:
        if self.sample_count == 0:
            return 0.0
        return self._histogram.get_min_value() / 1000.0

    @property
    def max_latency_ms(self) -> float:
        if self.sample_count == 0:
            return 0.0
        return self._histogram.get_max_value() / 1000.0

    @property
    def p50_latency_ms(self) -> float:
        return self.latency_at_percentile(50.0)

    @property
    def p95_latency_ms(self) -> float:
        return self.latency_at_percentile(95.0)

    @property
    def p99_latency_ms(self) -> float:
        return self.latency_at_percentile(99.0)

    @property
    def throughput_ops_per_sec(self) -> float:
        """Successful executions per second of measured query time."""
        if self.total_latency_us == 0:
            return 0.0
        return self.successful_iterations / (self.total_latency_us / 1_000_000)

    @property
    def avg_documents_returned(self) -> float:
        if self.successful_iterations == 0:
            return 0.0
        return self.total_documents_returned / self.successful_iterations

    @property
    def avg_documents_examined(self) -> float:
        if self.successful_iterations == 0:
            return 0.0
        return self.total_documents_examined / self.successful_iterations

    @property
    def success_rate(self) -> float:
        attempted = self.successful_iterations + self.errors
        return self.successful_iterations / attempted * 100 if attempted > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.query_name,
            "collection": self.collection,
            "description": self.description,
            "iterations": {
                "configured": self.iterations,
                "warmup": self.warmup_iterations,
                "successful": self.successful_iterations,
                "errors": self.errors,
                "success_rate": round(self.success_rate, 2),
            },
            "latency_ms": {
                "min": round(self.min_latency_ms, 3),
                "avg": round(self.avg_latency_ms, 3),
                "max": round(self.max_latency_ms, 3),
                "p50": round(self.p50_latency_ms, 3),
                "p95": round(self.p95_latency_ms, 3),
                "p99": round(self.p99_latency_ms, 3),
            },
            "throughput_ops_per_sec": round(self.throughput_ops_per_sec, 2),
            "avg_documents_returned": round(self.avg_documents_returned, 2),
            "avg_documents_examined": round(self.avg_documents_examined, 2),
            "expected_results": self.expected_results,
            "index_used": self.index_used,
            "explain_plan": self.explain_plan,
            "aborted_reason": self.aborted_reason,
            "errors": self.error_messages,
        }

    def __str__(self) -> str:
        return (
            f"QueryMetrics(name={self.query_name}, iterations={self.successful_iterations}, "
            f"avg={self.avg_latency_ms:.2f}ms, p95={self.p95_latency_ms:.2f}ms, "
            f"throughput={self.throughput_ops_per_sec:.1f}/sec)"
        )
