"""
Unit tests for monitoring and health checks.
"""

import json
import logging

import pytest

from admitrack.core.health import HealthChecker, HealthStatus, build_health_checker
from admitrack.core.monitoring import (
    MetricsCollector,
    PerformanceMonitor,
    StructuredFormatter,
    monitor_performance,
)


class TestMetricsCollector:
    """Test metrics collection."""

    def test_counters_with_tags(self):
        collector = MetricsCollector()

        collector.increment_counter("calls", tags={"op": "compute"})
        collector.increment_counter("calls", 2.0, tags={"op": "compute"})

        assert collector.get_counter("calls", {"op": "compute"}) == 3.0
        assert collector.get_counter("calls") == 0.0

    def test_timer_stats(self):
        collector = MetricsCollector()

        for value in (10.0, 20.0, 30.0):
            collector.record_timer("duration", value)

        stats = collector.get_timer_stats("duration")
        assert stats["count"] == 3
        assert stats["min"] == 10.0
        assert stats["max"] == 30.0
        assert stats["mean"] == 20.0
        assert collector.get_all_metrics()["timers"]["duration"]["count"] == 3

    def test_timer_samples_are_bounded(self):
        collector = MetricsCollector(max_samples=5)

        for value in range(10):
            collector.record_timer("duration", float(value))

        assert collector.get_timer_stats("duration")["min"] == 5.0

    def test_reset(self):
        collector = MetricsCollector()
        collector.set_gauge("memory", 1.0)

        collector.reset()

        assert collector.get_gauge("memory") is None


class TestMonitorPerformance:
    """Test the timing decorator."""

    def test_sync_function(self):
        monitor = PerformanceMonitor(MetricsCollector())

        @monitor_performance("svc", "op", monitor=monitor)
        def add(a, b):
            return a + b

        assert add(1, 2) == 3
        summary = monitor.get_performance_summary()
        assert summary["operations"]["svc.op"]["count"] == 1
        assert summary["operations"]["svc.op"]["success_rate"] == 1.0

    def test_sync_failure_is_recorded(self):
        monitor = PerformanceMonitor(MetricsCollector())

        @monitor_performance("svc", "boom", monitor=monitor)
        def boom():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            boom()

        tags = {"service": "svc", "operation": "boom", "success": "False", "error_type": "ValueError"}
        assert monitor.metrics_collector.get_counter("operation_errors", tags) == 1.0

    @pytest.mark.asyncio
    async def test_async_function(self):
        monitor = PerformanceMonitor(MetricsCollector())

        @monitor_performance("svc", "async_op", monitor=monitor)
        async def double(x):
            return x * 2

        assert await double(4) == 8
        assert monitor.get_performance_summary()["operations"]["svc.async_op"]["count"] == 1


class TestStructuredFormatter:
    """Test JSON log formatting."""

    def test_extra_fields(self):
        record = logging.LogRecord("admitrack.test", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        record.student_id = 7
        record.country = "UK"

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello world"
        assert entry["student_id"] == 7
        assert entry["country"] == "UK"
        assert "request_id" not in entry


class TestHealthChecker:
    """Test health checks."""

    @pytest.mark.asyncio
    async def test_standard_checks_healthy(self):
        async def repository_ok():
            return True

        checker = build_health_checker(repository_check=repository_ok)

        health = await checker.get_overall_health()

        assert set(health["checks"]) == {"catalog", "repository", "memory"}
        assert health["checks"]["catalog"]["status"] == "healthy"
        assert health["checks"]["repository"]["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_critical_failure_is_unhealthy(self):
        checker = HealthChecker()
        checker.register_check("ok", lambda: True, critical=True)
        checker.register_check("down", lambda: False, critical=True)

        health = await checker.get_overall_health()

        assert health["status"] == HealthStatus.UNHEALTHY.value
        assert health["statistics"]["unhealthy_checks"] == 1

    @pytest.mark.asyncio
    async def test_non_critical_failure_degrades(self):
        def broken():
            raise RuntimeError("probe failed")

        checker = HealthChecker()
        checker.register_check("ok", lambda: True)
        checker.register_check("optional", broken, critical=False)

        health = await checker.get_overall_health()

        assert health["status"] == HealthStatus.DEGRADED.value
        assert "probe failed" in health["checks"]["optional"]["message"]
        assert checker.get_check_history("optional")[0]["status"] == "unhealthy"

    @pytest.mark.asyncio
    async def test_no_checks(self):
        health = await HealthChecker().get_overall_health()

        assert health["status"] == HealthStatus.UNKNOWN.value

    @pytest.mark.asyncio
    async def test_unknown_check(self):
        result = await HealthChecker().run_check("missing")

        assert result.status == HealthStatus.UNKNOWN
