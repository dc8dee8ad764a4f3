"""Bookkeeping shared by the threaded and asyncio pools.

A pool owns a fixed set of member handles. Each member is either in the
``available`` deque or in the lent map, never both, so at every point
where no call is mid-flight ``available + active == capacity``. After
``close()`` idle members are retired and lent ones are retired as they
come back.

Handles are tracked by identity (``id()``), which lets the pool manage
objects that are unhashable or compare equal to each other. The pool
keeps a strong reference to every member, so an id cannot be recycled
while the handle is tracked.

Subclasses supply the locking discipline through ``_guard()`` and the
waiter mechanics through ``_deliver()`` and ``_fail()``. Every method in
this module that mutates state expects to be called with the guard held.
"""

from collections import deque
from typing import Any, Callable, ContextManager, Deque, Dict, Generic, Optional, TypeVar
import math

from ..config import config
from ..exceptions import InvalidReleaseError, PoolClosedError, PoolExhaustedError
from ..logging import get_logger
from ..monitoring.metrics import MetricsCollector, metrics as default_metrics
from .constants import DEFAULT_POOL_NAME
from .models import HandleState, PoolStats

T = TypeVar('T')


class PoolCore(Generic[T]):
    """State and invariants common to every bounded pool."""

    def __init__(
        self,
        capacity: int,
        *,
        name: Optional[str] = None,
        disposer: Optional[Callable[[T], Any]] = None,
        acquire_timeout: Optional[float] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        if acquire_timeout is not None and acquire_timeout < 0:
            raise ValueError("acquire_timeout must be non-negative")

        self._capacity = capacity
        self.name = name or DEFAULT_POOL_NAME
        self._log = get_logger(type(self).__module__, pool=self.name)
        self._disposer = disposer
        self._default_timeout = config.pool.acquire_timeout if acquire_timeout is None else acquire_timeout
        self._metrics = metrics or default_metrics

        self._members: Dict[int, T] = {}
        self._available: Deque[T] = deque()
        self._lent: Dict[int, T] = {}
        self._retired: Dict[int, T] = {}
        self._waiters: Deque[Any] = deque()
        self._closed = False

        self._total_created = 0
        self._total_acquired = 0
        self._total_released = 0
        self._total_timeouts = 0
        self._total_invalid_releases = 0

    # Hooks for subclasses

    def _guard(self) -> ContextManager:
        raise NotImplementedError

    def _deliver(self, waiter: Any, handle: T) -> bool:
        """Hand ``handle`` to ``waiter``; False if the waiter already gave up."""
        raise NotImplementedError

    def _fail(self, waiter: Any, error: Exception) -> None:
        raise NotImplementedError

    # Accessors

    @property
    def capacity(self) -> int:
        """Fixed number of handles the pool was built with."""
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def default_timeout(self) -> float:
        return self._default_timeout

    def available_count(self) -> int:
        """Number of idle handles at the moment of the call."""
        with self._guard():
            return len(self._available)

    def active_count(self) -> int:
        """Number of lent handles at the moment of the call."""
        with self._guard():
            return len(self._lent)

    def waiting_count(self) -> int:
        """Number of callers currently blocked in ``acquire``."""
        with self._guard():
            return len(self._waiters)

    def handle_state(self, handle: T) -> Optional[HandleState]:
        """State of ``handle`` in this pool, or None if it is not a member."""
        key = id(handle)
        with self._guard():
            if self._lent.get(key) is handle:
                return HandleState.LENT
            if self._members.get(key) is handle:
                return HandleState.AVAILABLE
            if self._retired.get(key) is handle:
                return HandleState.DISPOSED
        return None

    def stats(self) -> PoolStats:
        """Point-in-time snapshot of the pool."""
        with self._guard():
            return PoolStats(
                name=self.name,
                capacity=self._capacity,
                available=len(self._available),
                active=len(self._lent),
                waiting=len(self._waiters),
                closed=self._closed,
                total_created=self._total_created,
                total_acquired=self._total_acquired,
                total_released=self._total_released,
                total_timeouts=self._total_timeouts,
                total_invalid_releases=self._total_invalid_releases,
            )

    # Internal state transitions, guard held

    def _resolve_timeout(self, timeout: Optional[float]) -> Optional[float]:
        """Map the caller's timeout to seconds; None means wait forever."""
        if timeout is None:
            timeout = self._default_timeout
        if timeout < 0:
            raise ValueError("timeout must be non-negative")
        if math.isinf(timeout):
            return None
        return float(timeout)

    def _adopt(self, handle: T) -> None:
        self._members[id(handle)] = handle
        self._available.append(handle)
        self._total_created += 1

    def _take(self) -> T:
        # FIFO over idle handles: the longest-idle handle goes out first
        handle = self._available.popleft()
        self._lent[id(handle)] = handle
        self._total_acquired += 1
        return handle

    def _retire(self, handle: T) -> None:
        key = id(handle)
        self._members.pop(key, None)
        self._retired[key] = handle

    def _ensure_open(self) -> None:
        if self._closed:
            self._metrics.record_acquire(self.name, "closed")
            raise PoolClosedError(
                f"Resource pool '{self.name}' is closed",
                details={"pool": self.name, "active_count": len(self._lent)},
            )

    def _exhausted(self, timeout: Optional[float], waited: float) -> PoolExhaustedError:
        self._total_timeouts += 1
        self._metrics.record_acquire(self.name, "timeout", waited)
        self._record_occupancy()
        active = len(self._lent)
        self._log.warning(
            f"Resource pool '{self.name}' exhausted after {waited:.3f}s",
            active=active,
            timeout=timeout,
        )
        return PoolExhaustedError(
            f"Resource pool '{self.name}' exhausted. No handle available within "
            f"{timeout}s. Active handles: {active}",
            active_count=active,
            available_count=len(self._available),
            timeout=timeout,
            details={"pool": self.name, "capacity": self._capacity},
        )

    def _closed_while_waiting(self) -> PoolClosedError:
        return PoolClosedError(
            f"Resource pool '{self.name}' was closed while waiting for a handle",
            details={"pool": self.name},
        )

    def _check_release(self, handle: T) -> None:
        """Raise InvalidReleaseError unless ``handle`` is currently lent."""
        key = id(handle)
        if self._lent.get(key) is handle:
            return

        known = self._members.get(key) is handle or self._retired.get(key) is handle
        reason = InvalidReleaseError.NOT_LENT if known else InvalidReleaseError.FOREIGN
        self._total_invalid_releases += 1
        self._metrics.record_invalid_release(self.name, reason)
        self._log.error(
            f"Invalid release on resource pool '{self.name}'",
            reason=reason,
            handle=repr(handle),
        )
        if reason == InvalidReleaseError.FOREIGN:
            message = f"Handle {handle!r} was not created by resource pool '{self.name}'"
        else:
            message = f"Handle {handle!r} is not currently lent by resource pool '{self.name}'"
        raise InvalidReleaseError(
            message,
            reason=reason,
            details={
                "pool": self.name,
                "active_count": len(self._lent),
                "available_count": len(self._available),
            },
        )

    def _return_handle(self, handle: T) -> bool:
        """Move a lent handle back; True when the caller must dispose it."""
        key = id(handle)
        del self._lent[key]
        self._total_released += 1

        if self._closed:
            self._retire(handle)
            self._record_occupancy()
            return True

        # Direct hand-off to the oldest waiter keeps the handle LENT, so
        # a later acquire can never overtake a caller that is already queued.
        while self._waiters:
            waiter = self._waiters.popleft()
            if self._deliver(waiter, handle):
                self._lent[key] = handle
                self._total_acquired += 1
                self._record_occupancy()
                return False

        self._available.append(handle)
        self._record_occupancy()
        return False

    def _shutdown(self) -> list:
        """Mark closed, fail every waiter and return the idle handles to dispose."""
        self._closed = True
        idle = list(self._available)
        self._available.clear()
        for handle in idle:
            self._retire(handle)

        waiters = list(self._waiters)
        self._waiters.clear()
        for waiter in waiters:
            self._fail(waiter, self._closed_while_waiting())

        self._record_occupancy()
        return idle

    def _record_occupancy(self) -> None:
        self._metrics.update_occupancy(self.name, len(self._available), len(self._lent), len(self._waiters))

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return (
            f"{type(self).__name__}(name={self.name!r}, capacity={self._capacity}, "
            f"available={len(self._available)}, active={len(self._lent)}, status={status})"
        )
