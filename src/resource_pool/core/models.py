"""Data models describing pool and handle state."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class HandleState(str, Enum):
    """Lifecycle state of a single pooled handle."""
    AVAILABLE = "available"
    LENT = "lent"
    DISPOSED = "disposed"


class PoolStats(BaseModel):
    """Point-in-time snapshot of a pool.

    Values may be stale as soon as they are read when other callers are
    active on the same pool.
    """
    name: Optional[str] = None
    capacity: int = Field(gt=0)
    available: int = Field(ge=0)
    active: int = Field(ge=0)
    waiting: int = Field(default=0, ge=0)
    closed: bool = False

    total_created: int = 0
    total_acquired: int = 0
    total_released: int = 0
    total_timeouts: int = 0
    total_invalid_releases: int = 0

    @property
    def utilization(self) -> float:
        """Fraction of the capacity currently lent out."""
        return self.active / self.capacity
