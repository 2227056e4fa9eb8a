"""
core/logging.py
---------------
structlog setup shared by the API process and the store init script.

Output is console-rendered when DEBUG is on and one JSON object per line
otherwise. Every event logged while serving a request carries the request
method, the path and, once it has been resolved, the school the request
runs against (plus `school_fallback=True` when the selector was unknown).
"""

import logging
import sys

import structlog

from phrofs.core.config import settings

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpx")


def configure_logging() -> None:
    log_level = logging.DEBUG if settings.DEBUG else logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    if not settings.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer() if settings.DEBUG else structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def start_request_context(method: str, path: str) -> None:
    """Reset the per-request log context; called once per incoming request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(method=method, path=path)


def bind_school(school: str, used_fallback: bool = False) -> None:
    if used_fallback:
        structlog.contextvars.bind_contextvars(school=school, school_fallback=True)
    else:
        structlog.contextvars.bind_contextvars(school=school)


def get_logger(name: str = __name__):
    return structlog.get_logger(name)
