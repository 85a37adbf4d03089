"""Structured logging with a per-run identifier bound into every event."""

from __future__ import annotations

import logging
import sys
import uuid
from typing import Any

import structlog

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def new_run_id() -> str:
    """Generate a short run identifier."""
    return uuid.uuid4().hex[:8]


def set_run_context(run_id: str, **values: Any) -> None:
    """Bind run_id (and any extra values) to all later events in this context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(run_id=run_id, **values)


def set_stage(stage: str) -> None:
    structlog.contextvars.bind_contextvars(stage=stage)


def configure_logging(
    level: str = "info",
    format_type: str = "json",
    stream: Any = None,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (debug, info, warn, error)
        format_type: Output format ('json' or 'text')
        stream: Output stream (default: sys.stderr)
    """
    log_level = LEVELS.get(level.lower(), logging.INFO)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(stream or sys.stderr),
        # Module-level loggers must pick up a later reconfiguration.
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.typing.FilteringBoundLogger:
    """Return a lazy logger; name is attached as ``logger_name``."""
    if name:
        return structlog.get_logger(logger_name=name)
    return structlog.get_logger()


configure_logging()
