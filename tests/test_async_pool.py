"""Tests for the asyncio bounded resource pool."""

import asyncio
import time

import pytest

from resource_pool.core.async_pool import AsyncBoundedResourcePool
from resource_pool.core.models import HandleState
from resource_pool.exceptions import (
    InitializationError,
    InvalidReleaseError,
    PoolClosedError,
    PoolExhaustedError,
    ResourcePoolError,
)

from conftest import FakeHandle


class AsyncHandle:
    """Handle with an awaitable close."""

    def __init__(self, number):
        self.number = number
        self.closed = False

    async def close(self):
        await asyncio.sleep(0)
        self.closed = True


async def _make(capacity, metrics_collector, **kwargs):
    kwargs.setdefault("name", "async-pool")
    return await AsyncBoundedResourcePool.create(capacity, FakeHandle, metrics=metrics_collector, **kwargs)


class TestAsyncConstruction:
    """Test async warm-up."""

    @pytest.mark.asyncio
    async def test_coroutine_factory(self, metrics_collector):
        counter = iter(range(100))

        async def factory():
            await asyncio.sleep(0)
            return AsyncHandle(next(counter))

        pool = await AsyncBoundedResourcePool.create(3, factory, metrics=metrics_collector)

        assert pool.available_count() == 3
        assert pool.active_count() == 0
        await pool.close()

    @pytest.mark.asyncio
    async def test_failure_disposes_with_async_close(self, metrics_collector):
        built = []

        async def factory():
            if len(built) == 2:
                raise OSError("refused")
            handle = AsyncHandle(len(built))
            built.append(handle)
            return handle

        with pytest.raises(InitializationError) as exc_info:
            await AsyncBoundedResourcePool.create(5, factory, metrics=metrics_collector)

        assert exc_info.value.created == 2
        assert isinstance(exc_info.value.__cause__, OSError)
        assert all(handle.closed for handle in built)

    @pytest.mark.asyncio
    async def test_uninitialized_pool_refuses_acquire(self, metrics_collector):
        pool = AsyncBoundedResourcePool(2, FakeHandle, metrics=metrics_collector)
        with pytest.raises(ResourcePoolError):
            await pool.acquire(0)


class TestAsyncAcquireRelease:
    """Test async borrow, return and waiting."""

    @pytest.mark.asyncio
    async def test_exhausted_with_zero_timeout(self, metrics_collector):
        pool = await _make(2, metrics_collector)
        held = [await pool.acquire(0), await pool.acquire(0)]

        with pytest.raises(PoolExhaustedError) as exc_info:
            await pool.acquire(0)
        assert exc_info.value.active_count == 2

        for handle in held:
            pool.release(handle)
        assert pool.available_count() == 2
        await pool.close()

    @pytest.mark.asyncio
    async def test_release_wakes_one_waiter(self, metrics_collector):
        pool = await _make(1, metrics_collector)
        held = await pool.acquire(0)

        first = asyncio.create_task(pool.acquire(0.5))
        second = asyncio.create_task(pool.acquire(0.5))
        await asyncio.sleep(0.05)
        assert pool.waiting_count() == 2

        pool.release(held)
        assert await first is held
        assert not second.done()

        with pytest.raises(PoolExhaustedError):
            await second
        assert pool.waiting_count() == 0
        assert pool.active_count() == 1

        pool.release(held)
        await pool.close()

    @pytest.mark.asyncio
    async def test_timeout_accuracy(self, metrics_collector):
        pool = await _make(1, metrics_collector)
        held = await pool.acquire(0)

        started = time.monotonic()
        with pytest.raises(PoolExhaustedError):
            await pool.acquire(0.2)
        elapsed = time.monotonic() - started

        assert 0.19 <= elapsed < 0.7
        pool.release(held)
        await pool.close()

    @pytest.mark.asyncio
    async def test_infinite_timeout_waits_for_release(self, metrics_collector):
        pool = await _make(1, metrics_collector)
        held = await pool.acquire(0)

        waiter = asyncio.create_task(pool.acquire(float("inf")))
        await asyncio.sleep(0.05)
        assert pool.waiting_count() == 1
        assert not waiter.done()

        pool.release(held)
        assert await asyncio.wait_for(waiter, 1.0) is held
        pool.release(held)
        await pool.close()

    @pytest.mark.asyncio
    async def test_cancelled_waiter_is_removed(self, metrics_collector):
        pool = await _make(1, metrics_collector)
        held = await pool.acquire(0)

        task = asyncio.create_task(pool.acquire(5.0))
        await asyncio.sleep(0.01)
        assert pool.waiting_count() == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pool.waiting_count() == 0
        pool.release(held)
        assert pool.available_count() == 1
        await pool.close()

    @pytest.mark.asyncio
    async def test_handed_off_then_cancelled_returns_handle(self, metrics_collector):
        pool = await _make(1, metrics_collector)
        held = await pool.acquire(0)

        task = asyncio.create_task(pool.acquire(5.0))
        await asyncio.sleep(0.01)

        pool.release(held)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pool.active_count() == 0
        assert pool.available_count() == 1
        await pool.close()

    @pytest.mark.asyncio
    async def test_double_release(self, metrics_collector):
        pool = await _make(1, metrics_collector)
        handle = await pool.acquire(0)
        pool.release(handle)

        with pytest.raises(InvalidReleaseError):
            pool.release(handle)
        assert pool.available_count() == 1
        await pool.close()

    @pytest.mark.asyncio
    async def test_connection_context(self, metrics_collector):
        pool = await _make(2, metrics_collector)

        async with pool.connection(0) as handle:
            assert pool.handle_state(handle) == HandleState.LENT

        assert pool.handle_state(handle) == HandleState.AVAILABLE
        await pool.close()

    @pytest.mark.asyncio
    async def test_two_of_three_succeed_immediately(self, metrics_collector):
        pool = await _make(2, metrics_collector)

        async def caller(hold):
            loop = asyncio.get_running_loop()
            started = loop.time()
            async with pool.connection(1.0):
                waited = loop.time() - started
                await asyncio.sleep(hold)
            return waited

        waits = sorted(await asyncio.gather(caller(0.2), caller(0.2), caller(0.2)))

        assert waits[0] < 0.05
        assert waits[1] < 0.05
        assert 0.15 <= waits[2] < 1.0
        await pool.close()


class TestAsyncClose:
    """Test async shutdown."""

    @pytest.mark.asyncio
    async def test_close_fails_waiters_and_disposes_late_releases(self, metrics_collector):
        pool = await _make(2, metrics_collector)
        held = [await pool.acquire(0), await pool.acquire(0)]

        waiter = asyncio.create_task(pool.acquire(5.0))
        await asyncio.sleep(0.01)

        await pool.close()
        with pytest.raises(PoolClosedError):
            await waiter
        with pytest.raises(PoolClosedError):
            await pool.acquire(0)

        for handle in held:
            pool.release(handle)
        await pool.wait_for_disposals()

        assert all(handle.closed for handle in held)
        assert pool.active_count() == 0

    @pytest.mark.asyncio
    async def test_async_context_manager(self, metrics_collector):
        async with await _make(2, metrics_collector) as pool:
            handle = await pool.acquire(0)
            pool.release(handle)

        assert pool.closed
        assert handle.closed

    @pytest.mark.asyncio
    async def test_late_release_off_loop_keeps_handle_lent(self, metrics_collector):
        pool = await _make(1, metrics_collector)
        held = await pool.acquire(0)
        await pool.close()

        with pytest.raises(RuntimeError):
            await asyncio.to_thread(pool.release, held)
        assert pool.handle_state(held) == HandleState.LENT
        assert pool.active_count() == 1

        pool.release(held)
        await pool.wait_for_disposals()
        assert held.closed
        assert pool.active_count() == 0
