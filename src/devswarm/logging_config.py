"""
Logging configuration for devswarm.

Every module logs through structlog with snake_case event names and
key/value context. This module wires structlog and the standard library
logger together once, at process start.
"""

from __future__ import annotations

import logging
import sys

import structlog

_SWARM_LOGGERS = [
    "devswarm",
    "devswarm.tasks",
    "devswarm.swarm",
    "devswarm.agents",
    "devswarm.quality",
    "devswarm.routing",
    "devswarm.providers",
]

_NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "anthropic",
    "asyncio",
]


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """
    Configure structured logging.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR).
        json_logs: Render JSON lines instead of the console renderer.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        stream=sys.stderr,
    )
    for logger_name in _SWARM_LOGGERS:
        logging.getLogger(logger_name).setLevel(log_level)

    # Silence noisy third-party loggers
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(log_level, logging.WARNING))

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
