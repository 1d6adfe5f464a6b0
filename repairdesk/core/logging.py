"""Structured logging for the RepairDesk API.

Level, renderer and optional log file come from ``AppConfig`` (LOG_LEVEL,
LOG_FORMAT, LOG_FILE). Production always renders JSON so log shippers can
parse it. Every event carries the service name and environment.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from repairdesk.config import AppConfig, get_config

SERVICE_NAME = "repairdesk"


def add_service_context(config: AppConfig):
    """Processor that stamps events with the service and environment."""

    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", SERVICE_NAME)
        event_dict.setdefault("environment", config.environment)
        return event_dict

    return processor


def wants_json(config: AppConfig) -> bool:
    return config.is_production or config.log_format.lower() == "json"


def configure_logging(config: AppConfig | None = None) -> None:
    """Configure structlog and the stdlib root logger from ``config``.

    Raises:
        ValueError: LOG_LEVEL is not a logging level name
    """
    config = config or get_config()

    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown LOG_LEVEL: {config.log_level}")

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_service_context(config),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if wants_json(config):
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if config.log_file:
        handlers.append(logging.FileHandler(config.log_file))

    # Replaces handlers installed by an earlier call
    logging.basicConfig(format="%(message)s", handlers=handlers, level=level, force=True)
