"""Caller-side retry policy for acquiring from an exhausted pool.

Pools never retry on their own. These helpers retry only on
``PoolExhaustedError``, with exponential back-off between attempts, and
let every other error through at once.
"""

import asyncio
import time
from typing import Callable, Optional, TypeVar

from ..config import config
from ..exceptions import PoolExhaustedError
from ..logging import get_logger
from .async_pool import AsyncBoundedResourcePool
from .pool import BoundedResourcePool

logger = get_logger(__name__)

T = TypeVar('T')


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Delay before retry number ``attempt + 1`` (attempt counts from 0)."""
    return min(base * (2 ** attempt), maximum)


def _policy(max_retries: Optional[int], backoff_base: Optional[float], backoff_max: Optional[float]):
    max_retries = config.pool.max_retries if max_retries is None else max_retries
    backoff_base = config.pool.retry_backoff_base if backoff_base is None else backoff_base
    backoff_max = config.pool.retry_backoff_max if backoff_max is None else backoff_max
    if max_retries < 0:
        raise ValueError("max_retries must be non-negative")
    return max_retries, backoff_base, backoff_max


def acquire_with_retry(
    pool: BoundedResourcePool[T],
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_max: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Acquire from ``pool``, retrying on backpressure."""
    max_retries, backoff_base, backoff_max = _policy(max_retries, backoff_base, backoff_max)
    last_exception: Optional[PoolExhaustedError] = None

    for attempt in range(max_retries + 1):
        try:
            return pool.acquire(timeout)
        except PoolExhaustedError as e:
            last_exception = e
            if attempt < max_retries:
                delay = backoff_delay(attempt, backoff_base, backoff_max)
                logger.warning(
                    f"Acquire attempt {attempt + 1} failed, retrying in {delay:.3f}s",
                    pool=pool.name,
                    active=e.active_count,
                )
                sleep(delay)
            else:
                logger.error(f"All {attempt + 1} acquire attempts failed", pool=pool.name)

    raise last_exception


async def async_acquire_with_retry(
    pool: AsyncBoundedResourcePool[T],
    timeout: Optional[float] = None,
    max_retries: Optional[int] = None,
    backoff_base: Optional[float] = None,
    backoff_max: Optional[float] = None,
) -> T:
    """Async counterpart of :func:`acquire_with_retry`."""
    max_retries, backoff_base, backoff_max = _policy(max_retries, backoff_base, backoff_max)
    last_exception: Optional[PoolExhaustedError] = None

    for attempt in range(max_retries + 1):
        try:
            return await pool.acquire(timeout)
        except PoolExhaustedError as e:
            last_exception = e
            if attempt < max_retries:
                delay = backoff_delay(attempt, backoff_base, backoff_max)
                logger.warning(
                    f"Acquire attempt {attempt + 1} failed, retrying in {delay:.3f}s",
                    pool=pool.name,
                    active=e.active_count,
                )
                await asyncio.sleep(delay)
            else:
                logger.error(f"All {attempt + 1} acquire attempts failed", pool=pool.name)

    raise last_exception
