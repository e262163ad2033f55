"""
structlog configuration.

Dependency events (``dependency.created``, ``resolution.ignored`` ...) are
rendered as JSON lines for log shippers or as coloured console output when
running locally.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import structlog

RENDERERS = ("json", "text")


def _renderer(fmt: str) -> Any:
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    if fmt == "text":
        return structlog.dev.ConsoleRenderer()
    raise ValueError(f"Unknown log format {fmt!r}, expected one of {RENDERERS}")


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level {level!r}")
    return number


def configure_logging(
    level: str = "info",
    fmt: str = "json",
    *,
    project: Optional[str] = None,
) -> None:
    """
    Configure structlog for the dependency engine.

    ``project`` binds a project id to every event logged from the current
    context, so one host process serving a single programme does not need to
    pass it on each call.
    """
    structlog.contextvars.clear_contextvars()
    if project is not None:
        structlog.contextvars.bind_contextvars(project=project)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _renderer(fmt),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        cache_logger_on_first_use=False,
    )
