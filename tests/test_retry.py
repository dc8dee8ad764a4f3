"""Tests for the caller-side retry helpers."""

import asyncio

import pytest
from unittest.mock import Mock

from resource_pool.core.async_pool import AsyncBoundedResourcePool
from resource_pool.core.retry import acquire_with_retry, async_acquire_with_retry, backoff_delay
from resource_pool.exceptions import PoolClosedError, PoolExhaustedError

from conftest import FakeHandle


def test_backoff_delay_is_capped():
    assert backoff_delay(0, 0.1, 1.0) == pytest.approx(0.1)
    assert backoff_delay(2, 0.1, 1.0) == pytest.approx(0.4)
    assert backoff_delay(10, 0.1, 1.0) == 1.0


class TestAcquireWithRetry:
    """Test the threaded retry helper."""

    def test_returns_immediately_when_available(self, make_pool):
        pool = make_pool(capacity=1)
        sleep = Mock()

        handle = acquire_with_retry(pool, timeout=0, max_retries=3, sleep=sleep)

        assert pool.active_count() == 1
        sleep.assert_not_called()
        pool.release(handle)

    def test_gives_up_after_max_retries(self, make_pool):
        pool = make_pool(capacity=1)
        held = pool.acquire(0)
        sleep = Mock()

        with pytest.raises(PoolExhaustedError):
            acquire_with_retry(pool, timeout=0, max_retries=2, backoff_base=0.1, backoff_max=5.0, sleep=sleep)

        assert [c.args[0] for c in sleep.call_args_list] == [pytest.approx(0.1), pytest.approx(0.2)]
        assert pool.stats().total_timeouts == 3
        pool.release(held)

    def test_succeeds_once_handle_is_returned(self, make_pool):
        pool = make_pool(capacity=1)
        held = pool.acquire(0)
        sleep = Mock(side_effect=lambda _: pool.release(held))

        handle = acquire_with_retry(pool, timeout=0, max_retries=1, sleep=sleep)

        assert handle is held
        assert sleep.call_count == 1
        pool.release(handle)

    def test_other_errors_are_not_retried(self, make_pool):
        pool = make_pool(capacity=1)
        pool.close()
        sleep = Mock()

        with pytest.raises(PoolClosedError):
            acquire_with_retry(pool, timeout=0, max_retries=3, sleep=sleep)
        sleep.assert_not_called()

    def test_negative_retries_rejected(self, make_pool):
        pool = make_pool(capacity=1)
        with pytest.raises(ValueError):
            acquire_with_retry(pool, timeout=0, max_retries=-1)


class TestAsyncAcquireWithRetry:
    """Test the asyncio retry helper."""

    @pytest.mark.asyncio
    async def test_retries_until_release(self, metrics_collector):
        pool = await AsyncBoundedResourcePool.create(1, FakeHandle, metrics=metrics_collector)
        held = await pool.acquire(0)

        async def release_later():
            await asyncio.sleep(0.03)
            pool.release(held)

        releaser = asyncio.create_task(release_later())
        handle = await async_acquire_with_retry(pool, timeout=0, max_retries=5, backoff_base=0.02, backoff_max=0.05)
        await releaser

        assert handle is held
        pool.release(handle)
        await pool.close()

    @pytest.mark.asyncio
    async def test_raises_last_error(self, metrics_collector):
        pool = await AsyncBoundedResourcePool.create(1, FakeHandle, metrics=metrics_collector)
        held = await pool.acquire(0)

        with pytest.raises(PoolExhaustedError):
            await async_acquire_with_retry(pool, timeout=0, max_retries=1, backoff_base=0.01, backoff_max=0.01)

        assert pool.stats().total_timeouts == 2
        pool.release(held)
        await pool.close()
