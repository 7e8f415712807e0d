"""
Running health counters for generator and ranking components.

Counts are approximate under concurrency; they are advisory telemetry and
never gate generation.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"
    DISABLED = "disabled"


HEALTHY_SUCCESS_RATE = 80.0
DOWN_SUCCESS_RATE = 50.0

# Mean latency (ms) above which a component is at best degraded
LOGICAL_MAX_LATENCY_MS = 2000.0
CREATIVE_MAX_LATENCY_MS = 3000.0
RANKING_MAX_LATENCY_MS = 1000.0


@dataclass
class HealthSnapshot:
    status: HealthStatus
    success_rate: float
    average_response_time_ms: float
    total_requests: int
    error_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "success_rate": round(self.success_rate, 2),
            "average_response_time_ms": round(self.average_response_time_ms, 2),
            "total_requests": self.total_requests,
            "error_count": self.error_count,
        }


def classify(success_rate: float, average_ms: float, max_latency_ms: float) -> HealthStatus:
    """Bucket a success rate (percent) and mean latency into a status."""
    if success_rate < DOWN_SUCCESS_RATE:
        return HealthStatus.DOWN
    if success_rate >= HEALTHY_SUCCESS_RATE and average_ms <= max_latency_ms:
        return HealthStatus.HEALTHY
    return HealthStatus.DEGRADED


def aggregate_status(statuses: Iterable[HealthStatus]) -> HealthStatus:
    """healthy only if all are healthy, down if any is down, else degraded."""
    statuses = [s for s in statuses if s != HealthStatus.DISABLED]
    if any(s == HealthStatus.DOWN for s in statuses):
        return HealthStatus.DOWN
    if all(s == HealthStatus.HEALTHY for s in statuses):
        return HealthStatus.HEALTHY
    return HealthStatus.DEGRADED


class HealthMetrics:
    """Attempt/success/error/latency counters since process start."""

    def __init__(self, max_latency_ms: float):
        self.max_latency_ms = max_latency_ms
        self._lock = threading.Lock()
        self.total_requests = 0
        self.success_count = 0
        self.error_count = 0
        self.total_time_ms = 0.0

    def record_success(self, elapsed_ms: float) -> None:
        with self._lock:
            self.total_requests += 1
            self.success_count += 1
            self.total_time_ms += elapsed_ms

    def record_failure(self, elapsed_ms: float) -> None:
        with self._lock:
            self.total_requests += 1
            self.error_count += 1
            self.total_time_ms += elapsed_ms

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 100.0
        return self.success_count / self.total_requests * 100.0

    @property
    def average_response_time_ms(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_time_ms / self.total_requests

    def snapshot(self) -> HealthSnapshot:
        with self._lock:
            success_rate = self.success_rate
            average = self.average_response_time_ms
            total = self.total_requests
            errors = self.error_count
        return HealthSnapshot(
            status=classify(success_rate, average, self.max_latency_ms),
            success_rate=success_rate,
            average_response_time_ms=average,
            total_requests=total,
            error_count=errors,
        )
