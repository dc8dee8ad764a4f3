"""Process-wide registry of named pools."""

import threading
from typing import Any, Callable, Dict, List, Optional, TypeVar

from ..config import config
from ..exceptions import ConfigurationError
from ..logging import get_logger
from .models import PoolStats
from .async_pool import AsyncBoundedResourcePool
from .base import PoolCore
from .pool import BoundedResourcePool
from .singleton import SingletonMeta

logger = get_logger(__name__)

T = TypeVar('T')


class PoolRegistry(metaclass=SingletonMeta):
    """Singleton map from a name to the one pool that owns those resources.

    Pools can always be built and passed around directly; the registry is
    for code that needs to look a shared pool up by name.
    """

    def __init__(self):
        """Initialize the pool registry."""
        self._pools: Dict[str, PoolCore] = {}
        self._lock = threading.Lock()

    def register(self, name: str, pool: PoolCore) -> PoolCore:
        """Register an existing pool under ``name``."""
        with self._lock:
            if name in self._pools:
                raise ConfigurationError(f"A pool named '{name}' is already registered", details={"pool": name})
            self._pools[name] = pool
        logger.info(f"Registered pool '{name}'", capacity=pool.capacity)
        return pool

    def get_or_create(
        self,
        name: str,
        factory: Callable[[], T],
        capacity: Optional[int] = None,
        **pool_kwargs: Any,
    ) -> BoundedResourcePool[T]:
        """Get a threaded pool, building it on first use.

        Concurrent first calls build the pool exactly once.
        """
        with self._lock:
            pool = self._pools.get(name)
            if pool is None:
                pool = BoundedResourcePool.create(
                    config.pool.size if capacity is None else capacity,
                    factory,
                    name=name,
                    **pool_kwargs,
                )
                self._pools[name] = pool
                logger.info(f"Created pool '{name}'", capacity=pool.capacity)
        if not isinstance(pool, BoundedResourcePool):
            raise ConfigurationError(
                f"Pool '{name}' is registered as {type(pool).__name__}",
                details={"pool": name},
            )
        return pool

    def get(self, name: str) -> PoolCore:
        """Look a registered pool up by name."""
        with self._lock:
            if name not in self._pools:
                raise KeyError(name)
            return self._pools[name]

    def unregister(self, name: str) -> PoolCore:
        """Remove a pool from the registry without closing it."""
        with self._lock:
            return self._pools.pop(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._pools)

    def get_pool_stats(self) -> Dict[str, PoolStats]:
        """Get statistics for all pools."""
        with self._lock:
            pools = dict(self._pools)
        return {name: pool.stats() for name, pool in pools.items()}

    def close_all(self) -> None:
        """Close and forget all threaded pools.

        Raises:
            ConfigurationError: If asyncio pools are registered; use
                ``aclose_all`` from the event loop instead.
        """
        with self._lock:
            async_names = [n for n, p in self._pools.items() if isinstance(p, AsyncBoundedResourcePool)]
            if async_names:
                raise ConfigurationError(
                    "Asyncio pools must be closed with aclose_all()",
                    details={"pools": async_names},
                )
            pools = dict(self._pools)
            self._pools.clear()
        for name, pool in pools.items():
            pool.close()
            logger.info(f"Closed pool '{name}'")

    async def aclose_all(self) -> None:
        """Close and forget every pool, threaded or asyncio."""
        with self._lock:
            pools = dict(self._pools)
            self._pools.clear()
        for name, pool in pools.items():
            if isinstance(pool, AsyncBoundedResourcePool):
                await pool.close()
            else:
                pool.close()
            logger.info(f"Closed pool '{name}'")
