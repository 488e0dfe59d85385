"""Logging setup for structlog and the standard logging module.

Application events go through structlog; repositories and the mailer use
``logging.getLogger(__name__)``. Both end up on stderr with the same level.
Dev mode renders readable console lines, otherwise one JSON object per line.
"""

import logging
import sys

import structlog

from house_finder.core.config import settings


def configure_logging() -> None:
    """Configure structlog and the root stdlib logger once at startup."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    renderer: structlog.types.Processor
    if settings.dev_mode or settings.environment == "development":
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
