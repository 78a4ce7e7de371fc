"""structlog setup shared by the MCP server and the CLI."""

import logging
import sys
from typing import Any

import structlog

LOG_FORMATS = ("console", "json")


def configure_logging(log_level: str = "info", log_format: str = "console") -> None:
    """Route structlog through stdlib logging on stderr.

    stdout carries MCP JSON-RPC frames in stdio mode, so nothing may be
    logged there.

    Args:
        log_level: debug, info, warning, error or critical (any case)
        log_format: "console" for human-readable lines, "json" for JSON lines
    """
    if log_format not in LOG_FORMATS:
        valid = ", ".join(LOG_FORMATS)
        raise ValueError(f"Unknown log format '{log_format}'. Valid options: {valid}")
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
