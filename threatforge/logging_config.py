"""Structured logging setup shared by the HTTP service and the CLI."""

import logging
import sys
from typing import Optional

import structlog

from threatforge.config import Settings, settings


def configure_logging(config: Optional[Settings] = None, quiet: bool = False) -> None:
    """
    Configure structlog for the process.

    Args:
        config: Settings to read level and format from (global settings if None)
        quiet: Drop every log event (used by the CLI's --quiet flag)
    """
    config = config or settings

    if quiet:
        # Loggers cached by an earlier configure only honour the stdlib level
        logging.getLogger().setLevel(logging.CRITICAL + 1)
        structlog.configure(processors=[_drop_event], cache_logger_on_first_use=False)
        return

    level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    logging.getLogger().setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer()
            if config.log_format == "json"
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _drop_event(logger, method_name, event_dict):
    raise structlog.DropEvent
