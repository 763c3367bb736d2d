"""
Logging configuration.

Structured logging via structlog, routed through the stdlib root logger so
third-party records get the same rendering. Output goes to stderr; stdout is
reserved for command results.

Usage:
    from ensync_cli.log import get_logger, setup_logging

    setup_logging(level="DEBUG")
    logger = get_logger(__name__)
    logger.debug("Sending request", method="GET", path="/event")
"""

import logging
import sys
from typing import IO, Any

import structlog
from structlog.typing import Processor


def setup_logging(
    level: str = "WARNING",
    format_type: str = "console",
    stream: IO[str] | None = None,
) -> None:
    """
    Configure structured logging for the CLI process.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Output format ('console' or 'json')
        stream: Destination stream (defaults to stderr)
    """
    stream = stream or sys.stderr
    log_level = getattr(logging, level.upper())

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if format_type == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=stream.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> Any:
    """Get a structlog logger for the given name (typically __name__)."""
    return structlog.get_logger(name)
