"""Structured logging setup using structlog.

Logs go to stderr so the operator-facing summaries printed on stdout stay
readable (and can be redirected separately). Events are named
``component.event`` and carry their context as key/value pairs.

Usage:
    >>> from tenant_dump_migrator.utils.logging import configure_logging, get_logger
    >>> configure_logging("DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("registry.tenant_registered", namespace="tenant_a", offset=1000)
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import Processor


def _resolve_level(level: Optional[str]) -> int:
    if level is None:
        return logging.INFO
    return getattr(logging, level.upper(), logging.INFO)


def configure_logging(level: Optional[str] = None, json_output: bool = False) -> None:
    """Configure stdlib logging and structlog.

    Sets up:
    - ISO-8601 timestamps
    - Log level and logger name
    - Console rendering (or JSON when ``json_output`` is set)

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...). Defaults to INFO.
        json_output: Render events as JSON lines instead of console text.
    """
    log_level = _resolve_level(level)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)
    logging.basicConfig(format="%(message)s", level=log_level, handlers=[handler], force=True)

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Get a structlog BoundLogger instance.

    Args:
        name: Logger name (typically __name__ of the calling module)
    """
    return structlog.get_logger(name)
