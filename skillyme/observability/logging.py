"""
Structured logging for the payments API.

Every entry is a snake_case event with keyword context, rendered as one JSON
object per line (or coloured console output locally). Join-link tokens and
credentials are masked before rendering: a token in a log line is as good as
the join link itself.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from skillyme.config import settings

# Keys whose values are credentials or bearer secrets
SENSITIVE_KEYS = frozenset(
    {"access_token", "token", "password", "api_key", "authorization", "jwt_secret"}
)

# Stdlib loggers that duplicate our own request logging
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx")


def mask_secret(value: object) -> str:
    """Keep the last four characters so operators can correlate entries."""
    text = str(value)
    if len(text) <= 8:
        return "***"
    return f"***{text[-4:]}"


def redact_sensitive(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential-like values anywhere at the top level of an entry."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = mask_secret(event_dict[key])
    return event_dict


def add_service_fields(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.service_name)
    event_dict.setdefault("version", settings.api_version)
    return event_dict


def _renderer() -> Processor:
    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger.

    A JSON entry looks like:
        {"event": "payment_status_updated", "level": "info",
         "logger": "skillyme.services.payments", "payment_id": 101,
         "status": "paid", "request_id": "...", "service": "...",
         "version": "...", "timestamp": "2026-10-19T12:00:00.000000Z"}
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_fields,
        redact_sensitive,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        _renderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Logger bound to a module name: `get_logger(__name__)`."""
    return structlog.get_logger(name)


@contextmanager
def log_context(**values: Any) -> Iterator[None]:
    """
    Bind values (e.g. request_id) to every entry logged inside the block.

    Values bound by an enclosing block are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(**values):
        yield
