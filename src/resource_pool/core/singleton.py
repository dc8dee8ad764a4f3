"""Singleton metaclass for shared instances."""

import threading
from typing import Any, Dict, Type


class SingletonMeta(type):
    """Thread-safe singleton metaclass."""

    _instances: Dict[Type, Any] = {}
    _lock = threading.RLock()

    def __call__(cls, *args, **kwargs):
        """Create or return existing instance."""
        # The lock is held for the whole construction, so a second caller
        # never sees a half-built instance.
        with SingletonMeta._lock:
            instance = SingletonMeta._instances.get(cls)
            if instance is None:
                instance = super().__call__(*args, **kwargs)
                SingletonMeta._instances[cls] = instance
        return instance

    @classmethod
    def reset(mcs, cls: Type) -> None:
        """Drop the instance of a single class (for testing)."""
        with mcs._lock:
            mcs._instances.pop(cls, None)

    @classmethod
    def clear_instances(mcs) -> None:
        """Clear all singleton instances (for testing)."""
        with mcs._lock:
            mcs._instances.clear()
