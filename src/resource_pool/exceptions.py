"""Custom exceptions for the resource pool."""

from typing import Any, Dict, Optional


class ResourcePoolError(Exception):
    """Base exception for resource pool errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        """Initialize with message, optional details, and cause."""
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

        # Set the cause for proper exception chaining
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        """String representation with details."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message

    @classmethod
    def from_exception(cls, message: str, cause: Exception, details: Optional[Dict[str, Any]] = None):
        """Create exception with proper chaining from another exception."""
        return cls(message, details, cause)


class ConfigurationError(ResourcePoolError):
    """Exception raised for configuration-related errors."""
    pass


class InitializationError(ResourcePoolError):
    """Raised when the pool could not build all of its handles.

    Construction is all-or-nothing, so the handles created before the
    failure have already been disposed when this is raised.
    """

    def __init__(
        self,
        message: str,
        capacity: int = 0,
        created: int = 0,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        self.capacity = capacity
        self.created = created
        merged = {"capacity": capacity, "created": created}
        merged.update(details or {})
        super().__init__(message, merged, cause)

    @classmethod
    def from_exception(cls, message: str, cause: Exception, details: Optional[Dict[str, Any]] = None):
        """Create exception with proper chaining from another exception."""
        details = dict(details or {})
        capacity = details.pop("capacity", 0)
        created = details.pop("created", 0)
        return cls(message, capacity=capacity, created=created, details=details, cause=cause)


class PoolExhaustedError(ResourcePoolError):
    """No handle became available within the caller's timeout.

    This is the pool's backpressure signal, not a bug. Callers decide
    whether to retry, queue or fail the enclosing operation.
    """

    def __init__(
        self,
        message: str,
        active_count: int = 0,
        available_count: int = 0,
        timeout: Optional[float] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        self.active_count = active_count
        self.available_count = available_count
        self.timeout = timeout
        merged = {
            "active_count": active_count,
            "available_count": available_count,
            "timeout": timeout,
        }
        merged.update(details or {})
        super().__init__(message, merged, cause)


class InvalidReleaseError(ResourcePoolError):
    """A handle was released that the pool did not consider lent."""

    FOREIGN = "foreign"
    NOT_LENT = "not_lent"

    def __init__(
        self,
        message: str,
        reason: str = NOT_LENT,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        self.reason = reason
        merged = {"reason": reason}
        merged.update(details or {})
        super().__init__(message, merged, cause)


class PoolClosedError(ResourcePoolError):
    """Operation attempted after the pool was shut down."""
    pass
