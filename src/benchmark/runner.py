"""
Benchmark Runner.

Drives each QuerySpec through its phases and collects metrics:

    Warmup -> (optional) PlanCapture -> Measuring -> Done

Iterations of one query are strictly sequential. A suite may benchmark
several queries at once (``threads``), each with its own execution context.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Any, Callable

import structlog

from src.benchmark.explain import capture_plan
from src.benchmark.metrics import QueryMetrics
from src.config.settings import get_settings
from src.observability.logging import LogContext
from src.query.context import ExecutionContext
from src.query.errors import BenchmarkError, is_fatal
from src.query.executor import QueryExecutor
from src.query.models import QueryExecution, QuerySpec, QuerySuite
from src.query.validation import check_query_spec

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[int, int], None]


@dataclass
class IterationOutcome:
    """Result of one timed iteration; transient failures are carried, not raised."""

    success: bool
    latency_ms: float = 0.0
    documents_returned: int = 0
    documents_examined: int = 0
    error: str | None = None


@dataclass
class SuiteResult:
    """Metrics for every query in a suite run."""

    started_at: datetime
    completed_at: datetime | None = None
    results: list[QueryMetrics] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_seconds": (
                (self.completed_at - self.started_at).total_seconds()
                if self.completed_at else None
            ),
            "queries": [m.to_dict() for m in self.results],
        }

    def get_summary(self) -> dict[str, Any]:
        """Get summary of all benchmarked queries."""
        if not self.results:
            return {"message": "No queries have been run"}

        return {
            "total_queries": len(self.results),
            "aborted_queries": sum(1 for m in self.results if m.aborted_reason),
            "queries": [
                {
                    "name": m.query_name,
                    "success_rate": m.success_rate,
                    "avg_latency_ms": m.avg_latency_ms,
                    "p95_latency_ms": m.p95_latency_ms,
                    "p99_latency_ms": m.p99_latency_ms,
                    "throughput_ops_per_sec": m.throughput_ops_per_sec,
                    "avg_documents_returned": m.avg_documents_returned,
                }
                for m in self.results
            ],
        }


class QueryBenchmarkRunner:
    """
    Runs QuerySpecs against a document store and collects metrics.

    Features:
    - Pre-flight validation of parameters and join chains
    - Warmup iterations (latency discarded, failures tolerated)
    - Optional explain-plan capture
    - Measured iterations with per-iteration error tallying
    - One isolated execution context per query
    """

    def __init__(
        self,
        store: Any,
        execution: QueryExecution | None = None,
        executor: QueryExecutor | None = None,
        settings: Any = None,
    ):
        self.store = store
        self.execution = execution or QueryExecution()
        self.executor = executor or QueryExecutor()
        self._settings = settings or get_settings().benchmark

    def new_context(self, spec: QuerySpec) -> ExecutionContext:
        return ExecutionContext.for_query(spec, self.store, settings=self._settings)

    async def run_query(
        self,
        spec: QuerySpec,
        progress_callback: ProgressCallback | None = None,
        context: ExecutionContext | None = None,
    ) -> QueryMetrics:
        """
        Benchmark a single query.

        Args:
            spec: The query to run
            progress_callback: Optional callback receiving (completed, total)
            context: Execution context to use (a fresh one by default)

        Returns:
            Metrics for the query; aborted runs carry ``aborted_reason``
        """
        context = context or self.new_context(spec)
        metrics = QueryMetrics(
            query_name=spec.name,
            collection=spec.collection,
            description=spec.description,
            iterations=self.execution.iterations,
            warmup_iterations=self.execution.warmup_iterations,
            expected_results=spec.expected_results,
        )

        with LogContext(query=spec.name):
            logger.info(
                "Starting query benchmark",
                collection=spec.collection,
                kind=spec.kind.value,
                iterations=self.execution.iterations,
                warmup=self.execution.warmup_iterations,
                join_depth=spec.join.depth if spec.join else 0,
            )

            try:
                check_query_spec(spec, context.max_join_depth)

                await self._warmup(context)
                context.reset_phase()

                if self.execution.include_explain_plan:
                    await self._capture_plan(context, metrics)
                    context.reset_phase()

                await self._measure(context, metrics, progress_callback)

            except BenchmarkError as e:
                metrics.aborted_reason = f"{type(e).__name__}: {e}"
                logger.error("Query benchmark aborted", error=str(e), error_type=type(e).__name__)

            self._check_expected_results(metrics)

            logger.info(
                "Query benchmark completed",
                successful=metrics.successful_iterations,
                errors=metrics.errors,
                avg_latency_ms=round(metrics.avg_latency_ms, 3),
                p95_latency_ms=round(metrics.p95_latency_ms, 3),
                throughput=f"{metrics.throughput_ops_per_sec:.2f} ops/sec",
            )

        return metrics

    async def run_iteration(self, context: ExecutionContext) -> IterationOutcome:
        """
        Run and time one execution (substitution, primary query, join chain).

        Raises:
            ConfigurationError, DataAbsenceError: these abort the query
        """
        start_time = time.perf_counter()
        try:
            result = await self.executor.execute(context)
        except Exception as e:
            if is_fatal(e):
                raise
            latency_ms = (time.perf_counter() - start_time) * 1000
            return IterationOutcome(success=False, latency_ms=latency_ms, error=str(e))

        latency_ms = (time.perf_counter() - start_time) * 1000
        return IterationOutcome(
            success=True,
            latency_ms=latency_ms,
            documents_returned=result.documents_returned,
            documents_examined=result.documents_examined,
        )

    async def _warmup(self, context: ExecutionContext) -> None:
        count = self.execution.warmup_iterations
        if count <= 0:
            return

        logger.info("Running warmup iterations", count=count)
        for i in range(count):
            outcome = await self.run_iteration(context)
            if not outcome.success:
                logger.warning("Warmup iteration failed", iteration=i, error=outcome.error)

    async def _capture_plan(self, context: ExecutionContext, metrics: QueryMetrics) -> None:
        try:
            plan = await capture_plan(self.executor, context)
        except Exception as e:
            if is_fatal(e):
                raise
            logger.warning("Failed to get explain plan", error=str(e))
            return

        metrics.explain_plan = plan.plan_text
        metrics.index_used = plan.index_used

    async def _measure(
        self,
        context: ExecutionContext,
        metrics: QueryMetrics,
        progress_callback: ProgressCallback | None,
    ) -> None:
        total = self.execution.iterations
        interval = self._settings.progress_interval

        for i in range(total):
            outcome = await self.run_iteration(context)

            if outcome.success:
                metrics.record_latency(outcome.latency_ms)
                metrics.record_documents(outcome.documents_returned, outcome.documents_examined)
            else:
                metrics.record_error(f"Iteration {i + 1} failed: {outcome.error}")
                logger.error("Query iteration failed", iteration=i, error=outcome.error)

            if progress_callback and ((i + 1) % interval == 0 or i + 1 == total):
                progress_callback(i + 1, total)

    def _check_expected_results(self, metrics: QueryMetrics) -> None:
        if metrics.expected_results is None or metrics.successful_iterations == 0:
            return

        if metrics.avg_documents_returned != metrics.expected_results:
            logger.warning(
                "Matched documents differ from expected",
                expected=metrics.expected_results,
                actual=round(metrics.avg_documents_returned, 2),
            )

    async def run_suite(
        self,
        queries: list[QuerySpec],
        progress_callback: Callable[[str, int, int], None] | None = None,
    ) -> SuiteResult:
        """
        Benchmark a list of queries.

        Up to ``threads`` queries run concurrently; iterations within a
        query always stay sequential. Results keep the input order.
        """
        result = SuiteResult(started_at=datetime.utcnow())
        semaphore = asyncio.Semaphore(self.execution.threads)

        logger.info("Starting suite", queries=len(queries), threads=self.execution.threads)

        async def run_with_semaphore(spec: QuerySpec) -> QueryMetrics:
            async with semaphore:
                callback = partial(progress_callback, spec.name) if progress_callback else None
                return await self.run_query(spec, callback)

        result.results = list(await asyncio.gather(*(run_with_semaphore(q) for q in queries)))
        result.completed_at = datetime.utcnow()
        return result


async def run_query_suite(
    suite: QuerySuite,
    store: Any,
    progress_callback: Callable[[str, int, int], None] | None = None,
) -> SuiteResult:
    """Run every query of a suite with the suite's execution settings."""
    runner = QueryBenchmarkRunner(store, execution=suite.query_execution)
    return await runner.run_suite(suite.queries, progress_callback)
