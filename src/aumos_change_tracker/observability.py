"""structlog setup for aumos-change-tracker.

Every logger carries the service name and the emitting module, so change
tracking events can be filtered out of a host application's log stream.
"""

from __future__ import annotations

import logging
import sys

import structlog

SERVICE_NAME = "aumos-change-tracker"


def setup_logging(level: str = "info", json_logs: bool = True) -> None:
    """Configure structlog output to stderr.

    Args:
        level: Minimum level: debug | info | warning | error.
        json_logs: Render JSON lines; False renders colourless console output
            for local runs.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: structlog.typing.Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a lazy logger bound to the service and module name."""
    return structlog.get_logger(service=SERVICE_NAME, module=name)  # type: ignore[return-value]
