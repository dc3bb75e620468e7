"""
Structured logging for the notification engine (structlog over stdlib).

Every event carries a `component` field taken from the emitting module
(`scheduler`, `store`, `high_score`, `provider`, ...), so daemon output can
be filtered per part of the engine. Console rendering by default, JSON lines
with structured tracebacks when HOBBYWEATHER_LOG_FORMAT=json. The level
comes from HOBBYWEATHER_LOG_LEVEL (default INFO). HTTP client chatter is held
at WARNING or above.

Usage:
    from hobbyweather.logging_config import get_logger, setup_logging

    setup_logging()
    logger = get_logger(__name__)
    logger.info("scheduler_started", task_count=3)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

PACKAGE = "hobbyweather"

# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def add_component(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Derive `component` from the logger name unless the event already set one."""
    name = event_dict.get("logger")
    if name and "component" not in event_dict:
        if name == PACKAGE or not name.startswith(f"{PACKAGE}."):
            event_dict["component"] = name
        else:
            event_dict["component"] = name.rsplit(".", 1)[-1]
    return event_dict


def setup_logging(level: str | None = None, json_output: bool | None = None) -> int:
    """Configure structlog and the root handler. Returns the numeric level."""
    if level is None:
        level = os.environ.get("HOBBYWEATHER_LOG_LEVEL", "INFO")

    if json_output is None:
        json_output = os.environ.get("HOBBYWEATHER_LOG_FORMAT", "").lower() == "json"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_component,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        render_chain: list[structlog.types.Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_chain = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render_chain,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    return numeric_level


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["add_component", "get_logger", "setup_logging"]
