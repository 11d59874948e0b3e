"""
Unit Tests for Query Metrics.

Tests histogram-backed latency statistics and derived counters.
"""

import pytest

from src.benchmark.metrics import MAX_ERROR_MESSAGES, QueryMetrics


def make_metrics() -> QueryMetrics:
    return QueryMetrics(query_name="q", collection="c")


class TestQueryMetrics:
    """Test cases for QueryMetrics."""

    def test_latency_statistics(self) -> None:
        metrics = make_metrics()
        for latency in [10, 10, 10, 10, 100]:
            metrics.record_latency(latency)

        assert metrics.successful_iterations == 5
        assert metrics.p50_latency_ms == pytest.approx(10, rel=0.01)
        assert metrics.avg_latency_ms == pytest.approx(28, rel=0.01)
        assert metrics.min_latency_ms == pytest.approx(10, rel=0.01)
        assert metrics.max_latency_ms == pytest.approx(100, rel=0.01)
        assert metrics.p99_latency_ms == pytest.approx(100, rel=0.01)

    def test_empty_statistics_are_zero(self) -> None:
        metrics = make_metrics()
        metrics.record_error("boom")

        assert metrics.avg_latency_ms == 0.0
        assert metrics.min_latency_ms == 0.0
        assert metrics.max_latency_ms == 0.0
        assert metrics.p95_latency_ms == 0.0
        assert metrics.throughput_ops_per_sec == 0.0
        assert metrics.avg_documents_returned == 0.0
        assert metrics.success_rate == 0.0

    def test_throughput(self) -> None:
        """Successful iterations per second of summed query time."""
        metrics = make_metrics()
        for _ in range(4):
            metrics.record_latency(250)

        assert metrics.throughput_ops_per_sec == pytest.approx(4.0)

    def test_document_averages(self) -> None:
        metrics = make_metrics()
        metrics.record_latency(1)
        metrics.record_documents(3, 10)
        metrics.record_latency(1)
        metrics.record_documents(1, 10)
        metrics.record_error()

        assert metrics.avg_documents_returned == 2.0
        assert metrics.avg_documents_examined == 10.0
        assert metrics.success_rate == pytest.approx(200 / 3)

    def test_sub_microsecond_latency_is_clamped(self) -> None:
        metrics = make_metrics()
        metrics.record_latency(0.0)

        assert metrics.sample_count == 1
        assert metrics.total_latency_us == 1

    def test_error_messages_are_capped(self) -> None:
        metrics = make_metrics()
        for i in range(MAX_ERROR_MESSAGES + 5):
            metrics.record_error(f"failure {i}")

        assert metrics.errors == MAX_ERROR_MESSAGES + 5
        assert len(metrics.error_messages) == MAX_ERROR_MESSAGES

    def test_reset(self) -> None:
        metrics = make_metrics()
        metrics.record_latency(5)
        metrics.record_documents(1, 1)
        metrics.record_error("x")

        metrics.reset()

        assert metrics.sample_count == 0
        assert metrics.successful_iterations == 0
        assert metrics.errors == 0
        assert metrics.total_documents_returned == 0
        assert metrics.error_messages == []

    def test_to_dict(self) -> None:
        metrics = QueryMetrics(query_name="q", collection="c", iterations=2, expected_results=1)
        metrics.record_latency(2)
        metrics.record_documents(1, 1)

        data = metrics.to_dict()

        assert data["name"] == "q"
        assert data["iterations"]["successful"] == 1
        assert data["latency_ms"]["avg"] == pytest.approx(2, rel=0.01)
        assert data["expected_results"] == 1
        assert data["aborted_reason"] is None
        assert "q" in str(metrics)
