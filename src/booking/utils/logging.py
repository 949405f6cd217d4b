"""Logging configuration for the booking domain.

Routes structlog through the standard library so protean's own log records
and ours end up on the same handlers.
"""

import logging
import os
import sys

import structlog

from booking.config import settings


def get_log_level() -> str:
    """Get log level: ``BOOKING_LOG_LEVEL`` if set, else by environment."""
    if os.getenv("BOOKING_LOG_LEVEL"):
        return settings.log_level.upper()

    env = (os.getenv("ENVIRONMENT") or os.getenv("PROTEAN_ENV") or "development").lower()

    level_map = {
        "production": "INFO",
        "staging": "INFO",
        "development": "DEBUG",
        "test": "WARNING",
    }

    return level_map.get(env, settings.log_level.upper())


def setup_stdlib_logging(log_level: str) -> None:
    """Configure standard library logging."""
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    # Suppress noisy library loggers
    logging.getLogger("protean").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def setup_structlog(log_format: str) -> None:
    """Configure structlog for structured logging."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_format=None, log_level=None) -> None:
    """Configure all logging for the booking context.

    ``json`` renders one JSON object per line for log shippers; anything
    else uses the plain console renderer.
    """
    setup_stdlib_logging((log_level or get_log_level()).upper())
    setup_structlog(log_format or settings.log_format)
