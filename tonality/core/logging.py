"""
Structured logging configuration for the tonality engine.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.types import Processor

from tonality.core.config import settings


def _shared_processors() -> list[Processor]:
    """Processors common to every renderer."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(log_format: Optional[str] = None, log_level: Optional[str] = None) -> None:
    """
    Configure structured logging for the engine.

    Args:
        log_format: "json" or "console"; defaults to settings.log_format
        log_level: Standard level name; defaults to settings.log_level
    """
    log_format = log_format or settings.log_format
    log_level = log_level or settings.log_level

    processors = _shared_processors()
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a logger instance.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured logger instance

    Example:
        logger = get_logger(__name__)
        logger.info("range_matched", song="intro", score=0.82)
    """
    return structlog.get_logger(name)


# Initialize logging on module import
configure_logging()
