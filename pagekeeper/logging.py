"""structlog setup for hosts embedding pagekeeper."""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: int | str = logging.INFO, *, json: bool = False) -> None:
    """Route pagekeeper's structlog events to stderr as console lines or JSON."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
