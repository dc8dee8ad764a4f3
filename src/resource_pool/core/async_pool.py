"""Bounded resource pool for asyncio tasks."""

import asyncio
import contextlib
import inspect
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, List, Optional, Set, TypeVar

from ..exceptions import InitializationError, ResourcePoolError
from ..monitoring.metrics import MetricsCollector
from .base import PoolCore

T = TypeVar('T')


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def dispose_handle_async(handle: Any, disposer: Optional[Callable[[Any], Any]] = None) -> None:
    """Dispose a handle with ``disposer`` or its ``close()``, awaiting either if needed."""
    if disposer is not None:
        await _maybe_await(disposer(handle))
        return
    close = getattr(handle, "close", None)
    if callable(close):
        await _maybe_await(close())


class AsyncBoundedResourcePool(PoolCore[T]):
    """Fixed-capacity pool of interchangeable handles shared across tasks.

    Build it with ``await AsyncBoundedResourcePool.create(...)``, which
    warms up every handle before returning. The pool belongs to the event
    loop that uses it and must not be shared across threads.

    ``factory`` and ``disposer`` may be plain callables or coroutine
    functions. Waiting tasks are served first-come first-served.

    Example:
        pool = await AsyncBoundedResourcePool.create(3, open_session)

        async with pool.connection(timeout=1.0) as session:
            await session.get("/health")
    """

    def __init__(
        self,
        capacity: int,
        factory: Callable[[], Any],
        *,
        name: Optional[str] = None,
        disposer: Optional[Callable[[T], Any]] = None,
        acquire_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        super().__init__(
            capacity,
            name=name,
            disposer=disposer,
            acquire_timeout=acquire_timeout,
            metrics=metrics,
        )
        self._factory = factory
        self._ready = False
        self._pending_disposals: Set[asyncio.Task] = set()

    @classmethod
    async def create(cls, capacity: int, factory: Callable[[], Any], **kwargs: Any) -> "AsyncBoundedResourcePool[T]":
        """Create a fully warmed pool.

        Raises:
            ValueError: If ``capacity`` is not a positive integer.
            InitializationError: If any handle could not be created.
        """
        pool = cls(capacity, factory, **kwargs)
        await pool._warm_up()
        return pool

    def _guard(self):
        # Mutations never await, so the event loop already serialises them
        return contextlib.nullcontext()

    def _deliver(self, waiter: asyncio.Future, handle: T) -> bool:
        if waiter.done():
            return False
        waiter.set_result(handle)
        return True

    def _fail(self, waiter: asyncio.Future, error: Exception) -> None:
        if not waiter.done():
            waiter.set_exception(error)

    async def _warm_up(self) -> None:
        self._log.info(f"Warming up {self._capacity} handles")
        created: List[T] = []
        seen = set()
        for index in range(self._capacity):
            try:
                handle = await _maybe_await(self._factory())
                if id(handle) in seen:
                    raise ValueError("factory returned a handle that is already in the pool")
            except Exception as e:
                self._log.error(f"Failed to create handle {index + 1} of {self._capacity}: {str(e)}")
                await self._discard(created)
                raise InitializationError(
                    f"Failed to initialize resource pool '{self.name}'",
                    capacity=self._capacity,
                    created=len(created),
                    details={"pool": self.name, "failed_index": index},
                    cause=e,
                ) from e
            created.append(handle)
            seen.add(id(handle))

        for handle in created:
            self._adopt(handle)
        self._ready = True
        self._record_occupancy()
        self._log.info("Pool ready", capacity=self._capacity)

    async def _discard(self, handles: List[T]) -> None:
        for handle in handles:
            try:
                await dispose_handle_async(handle, self._disposer)
            except Exception as e:
                self._log.error(f"Failed to dispose handle during cleanup: {str(e)}")

    def _ensure_open(self) -> None:
        if not self._ready and not self._closed:
            raise ResourcePoolError(
                f"Resource pool '{self.name}' was not initialized, use AsyncBoundedResourcePool.create()",
                details={"pool": self.name},
            )
        super()._ensure_open()

    async def acquire(self, timeout: Optional[float] = None) -> T:
        """Borrow a handle.

        Args:
            timeout: Seconds to wait when the pool is exhausted. ``0`` fails
                at once, ``float('inf')`` waits forever and ``None`` uses the
                pool's default acquire timeout.

        Raises:
            PoolExhaustedError: If no handle became available in time.
            PoolClosedError: If the pool is or becomes closed.
        """
        wait_for = self._resolve_timeout(timeout)
        loop = asyncio.get_running_loop()
        started = loop.time()

        self._ensure_open()
        if self._available:
            handle = self._take()
            self._record_occupancy()
            self._metrics.record_acquire(self.name, "immediate")
            self._log.debug("Handle acquired", active=len(self._lent), available=len(self._available))
            return handle
        if wait_for == 0:
            raise self._exhausted(wait_for, 0.0)

        waiter: asyncio.Future = loop.create_future()
        self._waiters.append(waiter)
        self._record_occupancy()

        try:
            await asyncio.wait([waiter], timeout=wait_for)
        except asyncio.CancelledError:
            self._abandon(waiter)
            raise

        waited = loop.time() - started
        if waiter.done():
            error = waiter.exception()
            if error is not None:
                self._metrics.record_acquire(self.name, "closed", waited)
                raise error
            self._metrics.record_acquire(self.name, "waited", waited)
            self._log.debug("Handle acquired after waiting", waited=round(waited, 4))
            return waiter.result()

        self._abandon(waiter)
        raise self._exhausted(wait_for, waited)

    def _abandon(self, waiter: asyncio.Future) -> None:
        """Withdraw a waiter, passing on a handle it was given but will not use."""
        if waiter.done():
            if not waiter.cancelled() and waiter.exception() is None:
                handle = waiter.result()
                if self._return_handle(handle):
                    self._schedule_disposal(handle)
            return
        with contextlib.suppress(ValueError):
            self._waiters.remove(waiter)
        waiter.cancel()
        self._record_occupancy()

    def release(self, handle: T) -> None:
        """Return a borrowed handle to the pool without awaiting.

        Once the pool is closed the handle is disposed by a task on the
        running loop, so a late release must come from inside that loop.

        Raises:
            InvalidReleaseError: If ``handle`` is not currently lent by this
                pool, including a second release of the same handle.
            RuntimeError: If the pool is closed and no event loop is running.
                The handle stays lent.
        """
        self._check_release(handle)
        if self._closed:
            # Fails before any state changes when called off the loop
            asyncio.get_running_loop()
        must_dispose = self._return_handle(handle)
        self._log.debug("Handle released", active=len(self._lent), available=len(self._available))
        if must_dispose:
            self._schedule_disposal(handle)

    def _schedule_disposal(self, handle: T) -> None:
        task = asyncio.get_running_loop().create_task(dispose_handle_async(handle, self._disposer))
        self._pending_disposals.add(task)
        task.add_done_callback(self._disposal_done)

    def _disposal_done(self, task: asyncio.Task) -> None:
        self._pending_disposals.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self._log.error(f"Failed to dispose released handle: {task.exception()}")

    @asynccontextmanager
    async def connection(self, timeout: Optional[float] = None) -> AsyncIterator[T]:
        """Borrow a handle for the duration of an ``async with`` block."""
        handle = await self.acquire(timeout)
        try:
            yield handle
        finally:
            self.release(handle)

    async def close(self) -> None:
        """Shut the pool down.

        Idle handles are disposed now, waiting tasks fail with
        ``PoolClosedError`` and lent handles are disposed when released.
        Calling ``close`` again has no effect.
        """
        if self._closed:
            return
        idle = self._shutdown()
        lent = len(self._lent)

        errors = []
        for handle in idle:
            try:
                await dispose_handle_async(handle, self._disposer)
            except Exception as e:
                errors.append(e)
        self._log.info(f"Closed {len(idle) - len(errors)} handles", still_lent=lent)

        if errors:
            raise ResourcePoolError(
                f"Failed to dispose {len(errors)} handles of resource pool '{self.name}'",
                details={"pool": self.name, "errors": [str(e) for e in errors]},
                cause=errors[0],
            )

    async def wait_for_disposals(self) -> None:
        """Wait until handles released after ``close`` have been disposed."""
        if self._pending_disposals:
            await asyncio.gather(*self._pending_disposals, return_exceptions=True)

    async def __aenter__(self) -> "AsyncBoundedResourcePool[T]":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
