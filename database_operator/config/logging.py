"""
Structured logging configuration using structlog.

Reconciliation code binds the instance being worked on through
structlog.contextvars, so every event logged during one reconcile carries
its namespace and name. JSON is rendered in production or when LOG_JSON is
set (log collectors in the cluster), console output otherwise.
"""
import logging
import sys
from typing import Any, List, Optional

import structlog
from structlog.types import EventDict, Processor

from database_operator.config.settings import settings

# Chatty libraries and the level they are capped at
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "kubernetes_asyncio": logging.WARNING,
    "aiohttp": logging.WARNING,
}


def add_operator_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag every event with the operator name and version."""
    event_dict.setdefault("operator", settings.app_name)
    event_dict.setdefault("version", settings.app_version)
    return event_dict


def add_severity_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add severity level for Google Cloud Logging compatibility."""
    if "level" in event_dict:
        event_dict["severity"] = event_dict["level"].upper()
    return event_dict


def _renderer() -> Processor:
    if settings.is_production or settings.log_json:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level name, defaults to settings.log_level
    """
    level_name = (level or settings.log_level).upper()

    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        add_operator_context,
        add_severity_level,
        structlog.processors.format_exc_info,
        _renderer(),
    ]

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
        level=getattr(logging, level_name),
    )

    for name, cap in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(cap)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured structlog logger.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
