"""
Structured logging configuration using structlog.

JSON lines when LOG_FORMAT=json, pretty console output otherwise. Everything
goes to stdout. Event names are snake_case and never carry secret content,
passwords or client addresses.
"""

import hashlib
import logging
import sys

import structlog

from burnlink.config import Settings, settings


def _level(config: Settings) -> int:
    return getattr(logging, config.log_level.upper(), logging.INFO)


def setup_logging(config: Settings = settings) -> None:
    """
    Configure structlog and stdlib logging integration.

    Call this once at application startup.
    """
    if config.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level(config)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdlib logging (APScheduler, SQLAlchemy, uvicorn, the scheduler module)
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
        level=_level(config),
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def secret_ref(secret_id: str) -> str:
    """Short, stable fingerprint of a secret id for log correlation.

    Secret ids are bearer credentials; logs carry this instead.
    """
    return hashlib.sha256(secret_id.encode()).hexdigest()[:12]


def get_logger(name: str | None = None):
    """Get a structlog logger, optionally bound to a logger name."""
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
