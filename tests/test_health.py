"""Tests for health counters."""

import threading

import pytest

from src.simulator.health import (
    HealthMetrics,
    HealthStatus,
    aggregate_status,
    classify,
)


class TestClassify:
    @pytest.mark.parametrize("rate,avg,expected", [
        (100.0, 10.0, HealthStatus.HEALTHY),
        (80.0, 2000.0, HealthStatus.HEALTHY),
        (79.9, 10.0, HealthStatus.DEGRADED),
        (100.0, 2500.0, HealthStatus.DEGRADED),
        (50.0, 10.0, HealthStatus.DEGRADED),
        (49.9, 10.0, HealthStatus.DOWN),
    ])
    def test_buckets(self, rate, avg, expected):
        assert classify(rate, avg, 2000.0) == expected


class TestAggregateStatus:
    def test_all_healthy(self):
        assert aggregate_status([HealthStatus.HEALTHY, HealthStatus.HEALTHY]) == HealthStatus.HEALTHY

    def test_any_down(self):
        assert aggregate_status([HealthStatus.HEALTHY, HealthStatus.DOWN, HealthStatus.DEGRADED]) == HealthStatus.DOWN

    def test_degraded(self):
        assert aggregate_status([HealthStatus.HEALTHY, HealthStatus.DEGRADED]) == HealthStatus.DEGRADED

    def test_disabled_ignored(self):
        assert aggregate_status([HealthStatus.HEALTHY, HealthStatus.DISABLED]) == HealthStatus.HEALTHY


class TestHealthMetrics:
    """Tests for the running counters."""

    def test_empty(self):
        metrics = HealthMetrics(1000.0)
        snapshot = metrics.snapshot()
        assert snapshot.success_rate == 100.0
        assert snapshot.average_response_time_ms == 0.0
        assert snapshot.status == HealthStatus.HEALTHY

    def test_counts(self):
        metrics = HealthMetrics(1000.0)
        metrics.record_success(10.0)
        metrics.record_success(30.0)
        metrics.record_failure(20.0)

        snapshot = metrics.snapshot()
        assert snapshot.total_requests == 3
        assert snapshot.error_count == 1
        assert snapshot.success_rate == pytest.approx(200 / 3)
        assert snapshot.average_response_time_ms == pytest.approx(20.0)
        assert snapshot.status == HealthStatus.DEGRADED

    def test_to_dict(self):
        metrics = HealthMetrics(1000.0)
        metrics.record_success(1.234)
        data = metrics.snapshot().to_dict()
        assert data == {
            "status": "healthy",
            "success_rate": 100.0,
            "average_response_time_ms": 1.23,
            "total_requests": 1,
            "error_count": 0,
        }

    def test_concurrent_recording(self):
        metrics = HealthMetrics(1000.0)

        def worker():
            for _ in range(500):
                metrics.record_success(1.0)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert metrics.total_requests == 2000
