"""Structured logging for the resource pool.

Pools log through a logger bound to their name, so every event carries a
``pool`` field without each call passing it.
"""

import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import FilteringBoundLogger, Processor

from .config import config


def _renderer(log_format: str) -> List[Processor]:
    if log_format == "json":
        return [
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    # Colour codes only when a terminal will interpret them
    return [
        structlog.processors.TimeStamper(fmt="%H:%M:%S"),
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> FilteringBoundLogger:
    """Configure structured logging.

    Args:
        level: Log level name; defaults to ``LOG_LEVEL``.
        log_format: ``json`` or ``console``; defaults to ``LOG_FORMAT``.
    """
    level_no = getattr(logging, (level or config.app.log_level).upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level_no,
    )

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    processors.extend(_renderer(log_format or config.app.log_format))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_no),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger()


def get_logger(name: str, **context: Any) -> FilteringBoundLogger:
    """Get a logger for ``name`` with ``context`` bound to every event."""
    return structlog.get_logger(name, **context)


logger = configure_logging()
