"""
Logging configuration.

structlog renders every event; stdlib logging carries it, so records from
third-party libraries and from plugin-spine share one stderr stream and one
format.  Level and format come from :class:`PluginSpineSettings`
(``PLUGIN_SPINE_LOG_LEVEL`` / ``PLUGIN_SPINE_LOG_FORMAT``).

Usage:
    from plugin_spine.logging import configure_logging, get_logger
    configure_logging(settings)

    logger = get_logger(__name__)
    logger.info("resolver.resolved", plugin_id="ping", strategy="native")

    # Scoped context for one invocation
    with LogContext(plugin_id="ping"):
        logger.info("iteration.started")
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from plugin_spine.settings import PluginSpineSettings, get_settings

_configured = False
_handler: logging.Handler | None = None


def configure_logging(settings: PluginSpineSettings | None = None, *, force: bool = False) -> None:
    """Install the stderr handler and structlog pipeline described by ``settings``.

    Subsequent calls are no-ops unless ``force=True``; a forced call
    replaces the handler installed earlier instead of adding a second one.
    """
    global _configured, _handler

    if _configured and not force:
        return

    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_format.lower() == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
            ],
        )
    )

    root = logging.getLogger()
    if _handler is not None:
        root.removeHandler(_handler)
    root.addHandler(handler)
    root.setLevel(level)

    _handler = handler
    _configured = True


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs on this thread/task."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(plugin_id="ping", run="iteration"):
            logger.info("iteration.step")
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "is_configured",
    "bind_context",
    "unbind_context",
    "LogContext",
]
