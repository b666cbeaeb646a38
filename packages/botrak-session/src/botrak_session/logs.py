"""structlog setup for applications embedding the session core."""

from __future__ import annotations

import logging

import structlog

from botrak_session.config import LoggingSettings


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog with a level filter and a console or JSON renderer."""
    settings = settings or LoggingSettings()
    level = logging.getLevelName(settings.level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    renderer: structlog.types.Processor
    if settings.format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
