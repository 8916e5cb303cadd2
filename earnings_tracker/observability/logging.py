"""
Structured logging configuration using structlog.

JSON lines in production, coloured console output everywhere else. Services
log with key/value context (``key="NVDA_2025_Q3"``, ``confidence=0.85``);
the CLI binds the record key it is working on so every line carries it.
"""

import logging
import sys
from enum import Enum

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from earnings_tracker.config.settings import get_settings

# Libraries that log connection chatter at INFO
QUIET_LOGGERS = ("asyncio", "redis")


def _unwrap_enums(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Render enum fields (Quarter, EarningsResult, ...) as their plain values."""
    for field, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[field] = value.value
    return event_dict


def setup_logging(level: str | None = None) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level override (default: ``Settings.log_level``)

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Saved earnings record", key="NVDA_2025_Q3", confidence=0.85)
    """
    settings = get_settings()
    level = level or settings.log_level

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        _unwrap_enums,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if settings.is_production:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level))
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger (module name by convention)."""
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Attach key/value pairs to every later log line in this context."""
    structlog.contextvars.bind_contextvars(**kwargs)
