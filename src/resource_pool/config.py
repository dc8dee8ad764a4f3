"""Configuration management for the resource pool."""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError
from .core.constants import (
    DEFAULT_ACQUIRE_TIMEOUT,
    DEFAULT_LOG_FORMAT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_RETRIES,
    DEFAULT_POOL_SIZE,
    DEFAULT_RETRY_BACKOFF_BASE,
    DEFAULT_RETRY_BACKOFF_MAX,
    MAX_POOL_SIZE,
    VALID_LOG_FORMATS,
    VALID_LOG_LEVELS,
)


class PoolConfig(BaseSettings):
    """Pool sizing, timeout and retry settings."""

    size: int = Field(default=DEFAULT_POOL_SIZE, alias="POOL_SIZE", gt=0, le=MAX_POOL_SIZE)
    acquire_timeout: float = Field(default=DEFAULT_ACQUIRE_TIMEOUT, alias="POOL_ACQUIRE_TIMEOUT", ge=0.0)

    # Caller-side retry policy, the pool itself never retries
    max_retries: int = Field(default=DEFAULT_MAX_RETRIES, alias="POOL_MAX_RETRIES", ge=0, le=100)
    retry_backoff_base: float = Field(default=DEFAULT_RETRY_BACKOFF_BASE, alias="POOL_RETRY_BACKOFF_BASE", ge=0.0)
    retry_backoff_max: float = Field(default=DEFAULT_RETRY_BACKOFF_MAX, alias="POOL_RETRY_BACKOFF_MAX", ge=0.0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @model_validator(mode='after')
    def validate_backoff(self):
        """Validate that the back-off ceiling is not below its base."""
        if self.retry_backoff_max < self.retry_backoff_base:
            raise ConfigurationError(
                "POOL_RETRY_BACKOFF_MAX must be greater than or equal to POOL_RETRY_BACKOFF_BASE",
                details={"base": self.retry_backoff_base, "max": self.retry_backoff_max},
            )
        return self


class AppConfig(BaseSettings):
    """Application configuration settings."""

    # Environment
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=True, alias="DEBUG")

    # Logging
    log_level: str = Field(default=DEFAULT_LOG_LEVEL, alias="LOG_LEVEL")
    log_format: str = Field(default=DEFAULT_LOG_FORMAT, alias="LOG_FORMAT")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Normalize and validate the log level name."""
        level = str(v).upper()
        if level not in VALID_LOG_LEVELS:
            raise ConfigurationError(f"Unknown log level: {v}", details={"allowed": list(VALID_LOG_LEVELS)})
        return level

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Validate the log renderer name."""
        fmt = str(v).lower()
        if fmt not in VALID_LOG_FORMATS:
            raise ConfigurationError(f"Unknown log format: {v}", details={"allowed": list(VALID_LOG_FORMATS)})
        return fmt


class Config:
    """Main configuration class."""

    def __init__(self) -> None:
        self.pool = PoolConfig()
        self.app = AppConfig()

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment and .env file."""
        return cls()


# Global configuration instance
config = Config.load()
