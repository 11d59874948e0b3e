"""
Query Benchmark Framework.

Provides benchmarking for declarative document-store queries:
- Warmup and measured iterations per query
- Client-side join chains with matched-document counts
- HDR latency histograms and throughput
- Optional explain-plan capture
"""

from src.benchmark.explain import PlanCapture, capture_plan, extract_index_used
from src.benchmark.metrics import QueryMetrics
from src.benchmark.runner import (
    IterationOutcome,
    QueryBenchmarkRunner,
    SuiteResult,
    run_query_suite,
)

__all__ = [
    "QueryBenchmarkRunner",
    "QueryMetrics",
    "IterationOutcome",
    "SuiteResult",
    "run_query_suite",
    "PlanCapture",
    "capture_plan",
    "extract_index_used",
]
