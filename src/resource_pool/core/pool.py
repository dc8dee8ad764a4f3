"""Bounded resource pool for threaded callers."""

import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, List, Optional, TypeVar

from ..exceptions import InitializationError, ResourcePoolError
from ..monitoring.metrics import MetricsCollector
from .base import PoolCore

T = TypeVar('T')


class _Waiter:
    """A caller parked in ``acquire`` until a handle is handed to it."""

    __slots__ = ("event", "handle", "delivered", "error")

    def __init__(self):
        self.event = threading.Event()
        self.handle: Any = None
        self.delivered = False
        self.error: Optional[Exception] = None


def dispose_handle(handle: Any, disposer: Optional[Callable[[Any], Any]] = None) -> None:
    """Dispose a handle with ``disposer``, or its own ``close()`` if it has one."""
    if disposer is not None:
        disposer(handle)
        return
    close = getattr(handle, "close", None)
    if callable(close):
        close()


class BoundedResourcePool(PoolCore[T]):
    """Fixed-capacity pool of interchangeable handles shared across threads.

    All ``capacity`` handles are built eagerly by ``factory`` when the pool
    is constructed. ``acquire`` blocks without spinning until a handle is
    free or the timeout elapses; ``release`` never blocks.

    Waiters are served strictly first-come first-served: a released handle
    is handed directly to the oldest blocked caller. Idle handles are lent
    oldest-returned first.

    Example:
        pool = BoundedResourcePool.create(5, open_connection, name="bank-db")

        with pool.connection(timeout=2.0) as conn:
            conn.execute("SELECT 1")
    """

    def __init__(
        self,
        capacity: int,
        factory: Callable[[], T],
        *,
        name: Optional[str] = None,
        disposer: Optional[Callable[[T], Any]] = None,
        acquire_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Build the pool and warm up ``capacity`` handles.

        Raises:
            ValueError: If ``capacity`` is not a positive integer.
            InitializationError: If any handle could not be created. Handles
                built before the failure are disposed first.
        """
        super().__init__(
            capacity,
            name=name,
            disposer=disposer,
            acquire_timeout=acquire_timeout,
            metrics=metrics,
        )
        self._factory = factory
        self._lock = threading.Lock()
        self._warm_up()

    @classmethod
    def create(cls, capacity: int, factory: Callable[[], T], **kwargs: Any) -> "BoundedResourcePool[T]":
        """Create a fully warmed pool."""
        return cls(capacity, factory, **kwargs)

    def _guard(self):
        return self._lock

    def _deliver(self, waiter: _Waiter, handle: T) -> bool:
        waiter.handle = handle
        waiter.delivered = True
        waiter.event.set()
        return True

    def _fail(self, waiter: _Waiter, error: Exception) -> None:
        waiter.error = error
        waiter.event.set()

    def _warm_up(self) -> None:
        self._log.info(f"Warming up {self._capacity} handles")
        created: List[T] = []
        seen = set()
        for index in range(self._capacity):
            try:
                handle = self._factory()
                if id(handle) in seen:
                    raise ValueError("factory returned a handle that is already in the pool")
            except Exception as e:
                self._log.error(f"Failed to create handle {index + 1} of {self._capacity}: {str(e)}")
                self._discard(created)
                raise InitializationError(
                    f"Failed to initialize resource pool '{self.name}'",
                    capacity=self._capacity,
                    created=len(created),
                    details={"pool": self.name, "failed_index": index},
                    cause=e,
                ) from e
            created.append(handle)
            seen.add(id(handle))
            self._log.debug(f"Handle {index + 1} established and added to pool")

        with self._lock:
            for handle in created:
                self._adopt(handle)
            self._record_occupancy()
        self._log.info("Pool ready", capacity=self._capacity)

    def _discard(self, handles: List[T]) -> None:
        """Dispose handles of a pool that failed to initialize."""
        for handle in handles:
            try:
                dispose_handle(handle, self._disposer)
            except Exception as e:
                # The initialization error is what the caller needs to see
                self._log.error(f"Failed to dispose handle during cleanup: {str(e)}")

    def acquire(self, timeout: Optional[float] = None) -> T:
        """Borrow a handle.

        Args:
            timeout: Seconds to wait when the pool is exhausted. ``0`` fails
                at once, ``float('inf')`` waits forever and ``None`` uses the
                pool's default acquire timeout.
                Timeouts beyond ``threading.TIMEOUT_MAX`` also wait forever.

        Raises:
            PoolExhaustedError: If no handle became available in time.
            PoolClosedError: If the pool is or becomes closed.
        """
        wait_for = self._resolve_timeout(timeout)
        if wait_for is not None and wait_for > threading.TIMEOUT_MAX:
            wait_for = None
        started = time.monotonic()

        with self._lock:
            self._ensure_open()
            if self._available:
                handle = self._take()
                self._record_occupancy()
                self._metrics.record_acquire(self.name, "immediate")
                self._log.debug("Handle acquired", active=len(self._lent), available=len(self._available))
                return handle
            if wait_for == 0:
                raise self._exhausted(wait_for, 0.0)
            waiter = _Waiter()
            self._waiters.append(waiter)
            self._record_occupancy()

        try:
            waiter.event.wait(wait_for)
        except BaseException:
            self._abandon(waiter)
            raise

        with self._lock:
            waited = time.monotonic() - started
            if waiter.delivered:
                self._metrics.record_acquire(self.name, "waited", waited)
                self._log.debug("Handle acquired after waiting", waited=round(waited, 4))
                return waiter.handle
            if waiter.error is not None:
                self._metrics.record_acquire(self.name, "closed", waited)
                raise waiter.error
            self._waiters.remove(waiter)
            raise self._exhausted(wait_for, waited)

    def _abandon(self, waiter: _Waiter) -> None:
        """Withdraw a waiter whose wait was interrupted.

        A handle already handed to it goes back to the pool.
        """
        with self._lock:
            if waiter.delivered:
                must_dispose = self._return_handle(waiter.handle)
            else:
                if waiter.error is None:
                    self._waiters.remove(waiter)
                must_dispose = False
                self._record_occupancy()

        if must_dispose:
            dispose_handle(waiter.handle, self._disposer)

    def release(self, handle: T) -> None:
        """Return a borrowed handle to the pool.

        Raises:
            InvalidReleaseError: If ``handle`` is not currently lent by this
                pool, including a second release of the same handle.
        """
        with self._lock:
            self._check_release(handle)
            must_dispose = self._return_handle(handle)
            self._log.debug("Handle released", active=len(self._lent), available=len(self._available))

        if must_dispose:
            dispose_handle(handle, self._disposer)

    @contextmanager
    def connection(self, timeout: Optional[float] = None) -> Iterator[T]:
        """Borrow a handle for the duration of a ``with`` block."""
        handle = self.acquire(timeout)
        try:
            yield handle
        finally:
            self.release(handle)

    def close(self) -> None:
        """Shut the pool down.

        Idle handles are disposed now, blocked callers fail with
        ``PoolClosedError`` and lent handles are disposed when released.
        Calling ``close`` again has no effect.
        """
        with self._lock:
            if self._closed:
                return
            idle = self._shutdown()
            lent = len(self._lent)

        errors = []
        for handle in idle:
            try:
                dispose_handle(handle, self._disposer)
            except Exception as e:
                errors.append(e)
        self._log.info(f"Closed {len(idle) - len(errors)} handles", still_lent=lent)

        if errors:
            raise ResourcePoolError(
                f"Failed to dispose {len(errors)} handles of resource pool '{self.name}'",
                details={"pool": self.name, "errors": [str(e) for e in errors]},
                cause=errors[0],
            )

    def __enter__(self) -> "BoundedResourcePool[T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
