"""
camp_portal.observability.logging

Structured logging configuration for the identity service.

Responsibilities:
- Configure `structlog` with JSON (deployments) or console (local dev) rendering.
- Drop credential-bearing keys before any renderer sees the event.
- Provide a small wrapper for obtaining bound loggers.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Literal

import structlog
import structlog.tracebacks

LogFormat = Literal["json", "console"]

# Event keys that must never reach a log sink, even if a caller binds them by mistake.
REDACTED_KEYS = frozenset({"token", "password", "authorization", "secret", "reset_token"})

# Tracebacks render as dicts without frame locals; a failing handler frame holds
# the request body (passwords, reset tokens) in its locals.
_format_exception = structlog.processors.ExceptionRenderer(
    structlog.tracebacks.ExceptionDictTransformer(show_locals=False)
)

# Driver loggers that are chatty at DEBUG/INFO and never carry auth decisions.
_QUIET_LOGGERS = ("aiosqlite", "sqlalchemy.engine", "urllib3", "google.auth")


def configure_logging(*, service_name: str, level: str, fmt: LogFormat = "json") -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    tail: list[Any]
    if fmt == "console":
        tail = [structlog.dev.ConsoleRenderer(exception_formatter=structlog.dev.plain_traceback)]
    else:
        tail = [_format_exception, structlog.processors.JSONRenderer()]
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name(service_name),
            _redact_credentials,
            *tail,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def _redact_credentials(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# Request-scoped metadata is bound via contextvars in `observability.middleware`.
# Redaction is key-based only; event values are never scanned.
