"""assistant-guard — Structured logging configuration.

Uses structlog for structured, levelled logging with consistent key names
across all components.  All log entries include:
    - timestamp (ISO-8601)
    - level
    - module (Python logger name)
    - operation (bound via context variable while the orchestrator runs)

Logs are written to stderr so that the verification report printed on stdout
stays scannable.
"""

from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from pathlib import Path
from typing import Any

import structlog
from structlog.types import EventDict, WrappedLogger

_ctx_operation: ContextVar[str | None] = ContextVar("operation", default=None)


def bind_operation(operation: str | None) -> None:
    """Tag every subsequent log record with the running operation name."""
    _ctx_operation.set(operation)


def _inject_operation(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    if (operation := _ctx_operation.get()) is not None:
        event_dict.setdefault("operation", operation)
    return event_dict


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: Path | str | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Call once from the CLI callback, before any log statements.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` for human-readable output, ``"json"`` for
                  machine-readable structured logs.
        log_file: Optional path to write logs to in addition to stderr.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_operation,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if format == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

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
            renderer,
        ],
    )

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(level.upper())


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("policy_written", path="/home/u/.claude/settings.json")
    """
    return structlog.get_logger(name)
