"""Unit tests for in-process latency observability helpers."""

from __future__ import annotations

import pytest

from tiermem.observability import latency_metrics_snapshot
from tiermem.observability import record_latency
from tiermem.observability import reset_latency_metrics
from tiermem.observability import timed


class TestObservabilityLatency:
    def setup_method(self):
        reset_latency_metrics()

    def teardown_method(self):
        reset_latency_metrics()

    def test_records_latency_aggregates(self):
        record_latency(operation="context.assemble", duration_ms=10.0, ok=True)
        record_latency(operation="context.assemble", duration_ms=30.0, ok=False)

        metrics = latency_metrics_snapshot()["context.assemble"]
        assert metrics["count"] == 2
        assert metrics["error_count"] == 1
        assert metrics["total_ms"] == 40.0
        assert metrics["avg_ms"] == 20.0
        assert metrics["min_ms"] == 10.0
        assert metrics["max_ms"] == 30.0
        assert metrics["last_ms"] == 30.0

    def test_negative_durations_are_floored(self):
        record_latency(operation="semantic.search", duration_ms=-5.0)
        assert latency_metrics_snapshot()["semantic.search"]["min_ms"] == 0.0

    def test_reset_clears_all_metrics(self):
        record_latency(operation="consolidation.run", duration_ms=12.0, ok=True)
        assert "consolidation.run" in latency_metrics_snapshot()
        reset_latency_metrics()
        assert latency_metrics_snapshot() == {}

    def test_timed_counts_success(self):
        with timed("semantic.search"):
            pass
        metrics = latency_metrics_snapshot()["semantic.search"]
        assert metrics["count"] == 1
        assert metrics["error_count"] == 0

    def test_timed_counts_escaping_exception_as_error(self):
        with pytest.raises(RuntimeError):
            with timed("consolidation.run"):
                raise RuntimeError("boom")
        assert latency_metrics_snapshot()["consolidation.run"]["error_count"] == 1
