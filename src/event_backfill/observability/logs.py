"""structlog setup shared by the CLI entry points."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from event_backfill.config.models import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure structlog rendering and level filtering.

    Console rendering is used for interactive runs; ``json_output`` switches to
    one JSON object per line for log collectors.  Logs go to stderr so that
    command results on stdout stay machine-readable.
    """
    config = config or LoggingConfig()
    level = logging.getLevelName(config.level.upper())
    if not isinstance(level, int):
        msg = f"Unknown log level: {config.level}"
        raise ValueError(msg)

    logging.basicConfig(
        format="%(message)s", stream=sys.stderr, level=level, force=True
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    if config.json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
