"""structlog setup writing key/value events to the debug log file."""

from __future__ import annotations

import logging
from pathlib import Path

import structlog

from caja_pos.config import DEBUG_LOG_PATH

_configured = False


def configure_logging(log_path: str = DEBUG_LOG_PATH, level: int = logging.DEBUG) -> None:
    """Route structlog output to an append-only file; the terminal belongs to the TUI."""
    global _configured
    if _configured:
        return

    try:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        log_file = path.open("a", encoding="utf-8")
    except OSError:
        # Logging must never interfere with app flow.
        log_file = None

    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.KeyValueRenderer(key_order=["timestamp", "level", "event"]),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=log_file) if log_file else structlog.ReturnLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    return structlog.get_logger(name)
