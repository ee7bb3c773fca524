"""
structlog configuration for the explorer.

One JSON line per event with event_type, level, timestamp, logger name and the
worker thread (rebuilder / notifier / main). String values are passed through
scrub_secret, since upstream URLs carry secretPhrase in the query string.

Imports nothing from signum_explorer except core.exceptions, which has no
dependencies of its own.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
from datetime import datetime, timezone
from typing import Any

import structlog

from signum_explorer.core.exceptions import scrub_secret

# Third-party loggers that would print full request URLs at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


def _add_timestamp(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _add_thread(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.setdefault("thread", threading.current_thread().name)
    return event_dict


def _scrub_values(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop secretPhrase payloads from every string value, exception text included."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = scrub_secret(value)
    return event_dict


def _event_type(
    logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """structlog's positional 'event' becomes event_type."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    return event_dict


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """
    (Re)configure structlog. Defaults come from LOG_LEVEL (INFO) and
    LOG_FORMAT (json; anything else gives the console renderer).
    """
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).strip().upper()
    level_value = getattr(logging, level_name, logging.INFO)
    output = (fmt or os.getenv("LOG_FORMAT", "json")).strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _add_thread,
        _event_type,
        _scrub_values,
    ]
    if output == "json":
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty(), event_key="event_type"))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level_value, logging.WARNING))


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Structured logger bound to the module name.

        logger = get_logger(__name__)
        logger.warning("pool_request_failed", host=host, request_type="getAccount", error=str(e))
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_account(account_id: str) -> structlog.BoundLogger:
    """Logger with account_id bound to every call."""
    return get_logger("signum_explorer").bind(account_id=account_id)
