"""Pool-wide constants and default configuration values."""

from typing import Final

# Pool Sizing
DEFAULT_POOL_SIZE: Final[int] = 10
MAX_POOL_SIZE: Final[int] = 10000

# Timeout Constants (in seconds)
DEFAULT_ACQUIRE_TIMEOUT: Final[float] = 5.0

# Retry Constants
DEFAULT_MAX_RETRIES: Final[int] = 0
DEFAULT_RETRY_BACKOFF_BASE: Final[float] = 0.1
DEFAULT_RETRY_BACKOFF_MAX: Final[float] = 2.0

# Logging Constants
DEFAULT_LOG_LEVEL: Final[str] = "INFO"
DEFAULT_LOG_FORMAT: Final[str] = "json"
VALID_LOG_LEVELS: Final[tuple] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS: Final[tuple] = ("json", "console")

# Monitoring Constants
ACQUIRE_WAIT_BUCKETS: Final[tuple] = (0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)

# Naming
DEFAULT_POOL_NAME: Final[str] = "default"
MOCK_CONNECTION_PREFIX: Final[str] = "CONN"
