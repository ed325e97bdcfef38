"""Structured logging for the dead letter service.

Workers log JSON lines to stdout. The operator CLI logs console-rendered
lines to stderr, keeping stdout free for the reports it prints. While a
failure is being captured, ``capture_context`` binds the failed job's id and
source queue so every event logged in between carries them.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

LOG_FORMATS = ("json", "console")

# arq logs every job start/finish at INFO; redis and asyncio chatter on reconnects
NOISY_LOGGERS = ("arq.worker", "arq.jobs", "redis", "asyncio")


def capture_context(job_id: str, queue_name: str) -> AbstractContextManager[object]:
    """Bind job_id and queue_name to every event logged inside the block.

    Keyword arguments passed to an individual log call take precedence.
    """
    return structlog.contextvars.bound_contextvars(job_id=job_id, queue_name=queue_name)


def _renderer(log_format: str) -> list[structlog.types.Processor]:
    if log_format == "json":
        return [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    if log_format == "console":
        # ConsoleRenderer formats exc_info itself
        return [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]
    msg = f"log_format must be one of {LOG_FORMATS}, got {log_format!r}"
    raise ValueError(msg)


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: "json" for workers, "console" for the operator CLI.
    """
    renderer = _renderer(log_format)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderer],
    )

    handler = logging.StreamHandler(sys.stdout if log_format == "json" else sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
