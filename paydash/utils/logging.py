"""
structlog setup for paydash.

Events are snake_case names with keyword context. The request tracing
middleware in paydash.main binds ``request_id`` into contextvars, and every
event logged while handling that request carries it.
"""

import logging
import sys
from decimal import Decimal
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from paydash.config import get_settings

# Loggers that drown out engine events at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx")


def add_severity(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["severity"] = method_name.upper()
    return event_dict


def stringify_decimals(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Render Decimal amounts as exact strings instead of float reprs."""
    for key, value in event_dict.items():
        if isinstance(value, Decimal):
            event_dict[key] = str(value)
    return event_dict


def build_processors(renderer: Processor) -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_severity,
        stringify_decimals,
        renderer,
    ]


def configure_logging() -> None:
    """
    Configure stdlib logging and structlog from settings.

    JSON lines in production; the console renderer in dev mode or when
    LOG_FORMAT is not "json". Colours are off under TESTING so captured
    output stays readable.
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if settings.log_format == "json" and not settings.dev_mode:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=not settings.testing)

    structlog.configure(
        processors=build_processors(renderer),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    return structlog.get_logger(name)
