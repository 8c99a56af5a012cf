"""
Structured logging configuration.

Configures structlog on top of the standard library logging module so that
both application events and third-party loggers (uvicorn, aiosqlite) share
one output stream.
"""

import logging
from typing import Optional

import structlog

from opsmonitor.config.models import LogFormat, LoggingConfig


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure structured logging for the monitor process.

    Args:
        config: Logging configuration (defaults to JSON at INFO).
    """
    config = config or LoggingConfig()

    renderer = (
        structlog.processors.JSONRenderer()
        if config.format == LogFormat.JSON
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, config.level.value),
    )

    # Reduce noise from uvicorn access logs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
