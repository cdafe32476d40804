"""Structured logging for RefHub (structlog over stdout)."""

import logging
import sys

import structlog

from refhub.settings import settings

# Libraries whose INFO output drowns the application events
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "passlib")


def _renderer(log_format: str):
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [structlog.dev.ConsoleRenderer()]


def configure_logging(level: str | None = None, log_format: str | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name (defaults to settings.log_level)
        log_format: "json" or "console" (defaults to settings.log_format)
    """
    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format
    numeric_level = logging.getLevelName(level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso" if log_format == "json" else "%Y-%m-%d %H:%M:%S"),
            *_renderer(log_format),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Every event carries the service identity
    structlog.contextvars.bind_contextvars(app=settings.app_name, env=settings.env)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    if numeric_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)
