"""Logging setup (structlog on top of stdlib logging). Everything goes to stderr."""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import structlog


def setup_logging(level: str = "INFO", fmt: str = "console") -> None:
    """Configure structlog. fmt is "console" for humans, anything else gives JSON lines."""
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())

    # Not cached: setup runs again once the config file has been read.
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )


def bootstrap_logging(level: Optional[str] = None) -> None:
    """Logging for the time before the config file is loaded: flag, then env, then INFO."""
    setup_logging(
        level or os.getenv("LOG_LEVEL") or "INFO",
        os.getenv("LOG_FORMAT") or "console",
    )
