"""Bounded resource pool with blocking acquire and checked release."""

__version__ = "0.1.0"

# Import main components
from .config import Config
from .core.async_pool import AsyncBoundedResourcePool
from .core.models import HandleState, PoolStats
from .core.pool import BoundedResourcePool
from .core.registry import PoolRegistry
from .core.retry import acquire_with_retry, async_acquire_with_retry
from .exceptions import (
    ConfigurationError,
    InitializationError,
    InvalidReleaseError,
    PoolClosedError,
    PoolExhaustedError,
    ResourcePoolError,
)
from .logging import get_logger

__all__ = [
    "AsyncBoundedResourcePool",
    "BoundedResourcePool",
    "Config",
    "ConfigurationError",
    "HandleState",
    "InitializationError",
    "InvalidReleaseError",
    "PoolClosedError",
    "PoolExhaustedError",
    "PoolRegistry",
    "PoolStats",
    "ResourcePoolError",
    "acquire_with_retry",
    "async_acquire_with_retry",
    "get_logger",
]
