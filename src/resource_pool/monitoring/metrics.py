"""Prometheus metrics for resource pools."""

from typing import Optional

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry, generate_latest
from prometheus_client.core import REGISTRY
import structlog

from ..core.constants import ACQUIRE_WAIT_BUCKETS


logger = structlog.get_logger(__name__)


class MetricsCollector:
    """Centralized metrics collection for pool activity."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics collector."""
        self.registry = registry or REGISTRY
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up all Prometheus metrics."""
        # Occupancy
        self.handles_available = Gauge(
            'resource_pool_handles_available',
            'Handles currently available for acquisition',
            ['pool'],
            registry=self.registry
        )

        self.handles_active = Gauge(
            'resource_pool_handles_active',
            'Handles currently lent out',
            ['pool'],
            registry=self.registry
        )

        self.waiters = Gauge(
            'resource_pool_waiting',
            'Callers currently blocked in acquire',
            ['pool'],
            registry=self.registry
        )

        # Acquisition
        self.acquire_total = Counter(
            'resource_pool_acquire_total',
            'Total acquire attempts by outcome',
            ['pool', 'outcome'],
            registry=self.registry
        )

        self.acquire_wait_seconds = Histogram(
            'resource_pool_acquire_wait_seconds',
            'Time spent waiting for a handle',
            ['pool'],
            buckets=list(ACQUIRE_WAIT_BUCKETS),
            registry=self.registry
        )

        # Misuse
        self.invalid_release_total = Counter(
            'resource_pool_invalid_release_total',
            'Total rejected releases',
            ['pool', 'reason'],
            registry=self.registry
        )

    def update_occupancy(self, pool: str, available: int, active: int, waiting: int):
        """Update occupancy gauges for a pool."""
        self.handles_available.labels(pool=pool).set(available)
        self.handles_active.labels(pool=pool).set(active)
        self.waiters.labels(pool=pool).set(waiting)

    def record_acquire(self, pool: str, outcome: str, wait_seconds: float = 0.0):
        """Record the outcome of an acquire call."""
        self.acquire_total.labels(pool=pool, outcome=outcome).inc()
        self.acquire_wait_seconds.labels(pool=pool).observe(wait_seconds)

    def record_invalid_release(self, pool: str, reason: str):
        """Record a rejected release."""
        self.invalid_release_total.labels(pool=pool, reason=reason).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus text format."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
metrics = MetricsCollector()
