"""Pytest configuration and fixtures."""

import threading
import time

import pytest
import structlog
from prometheus_client import CollectorRegistry

from resource_pool.core.pool import BoundedResourcePool
from resource_pool.core.registry import PoolRegistry
from resource_pool.core.singleton import SingletonMeta
from resource_pool.monitoring.metrics import MetricsCollector

# Loggers bind to sys.stdout on first use; the CLI runner swaps stdout per
# invocation, so cached loggers could end up writing to a closed stream.
structlog.configure(cache_logger_on_first_use=False)


class FakeHandle:
    """Stand-in resource that records whether it was closed."""

    _counter = 0
    _lock = threading.Lock()

    def __init__(self):
        with FakeHandle._lock:
            FakeHandle._counter += 1
            self.id = FakeHandle._counter
        self.closed = False

    def close(self):
        self.closed = True

    def __repr__(self):
        return f"FakeHandle({self.id})"


def wait_until(predicate, timeout=2.0, interval=0.005):
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def metrics_collector():
    """Metrics collector on a private registry."""
    return MetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def make_pool(metrics_collector):
    """Build threaded pools that are closed after the test."""
    pools = []

    def _make(capacity=2, factory=FakeHandle, **kwargs):
        kwargs.setdefault("metrics", metrics_collector)
        kwargs.setdefault("name", "test-pool")
        pool = BoundedResourcePool.create(capacity, factory, **kwargs)
        pools.append(pool)
        return pool

    yield _make

    for pool in pools:
        pool.close()


@pytest.fixture
def registry():
    """Fresh pool registry singleton."""
    SingletonMeta.reset(PoolRegistry)
    yield PoolRegistry()
    SingletonMeta.reset(PoolRegistry)
