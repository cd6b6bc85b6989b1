"""
Structured logging for the data checker.
Uses structlog over the stdlib root logger; events are snake_case names with
keyword context, rendered for the console in dev and as JSON elsewhere.
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from shared.config import Environment, get_settings

# Playwright errors carry the full call log; page text can run to thousands of chars.
MAX_VALUE_CHARS = 600

_NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncio", "playwright")


def truncate_long_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Clip string values so one failed page does not flood the log."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_VALUE_CHARS:
            event_dict[key] = f"{value[:MAX_VALUE_CHARS]}... [{len(value)} chars]"
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        truncate_long_values,
    ]


def setup_logging(
    service_name: str,
    extra_context: dict[str, Any] | None = None,
    json_logs: Optional[bool] = None,
) -> None:
    """
    Configure structured logging for a process.

    Args:
        service_name: The service identifier (api, verifier).
        extra_context: Additional static context fields bound to every log entry.
        json_logs: Force the JSON renderer on or off; by default JSON is used
            outside the dev environment.
    """
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if json_logs is None:
        json_logs = settings.environment != Environment.DEV

    renderer: Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    bound: dict[str, Any] = {"service": service_name, "instance_id": settings.instance_id}
    if extra_context:
        bound.update(extra_context)
    structlog.contextvars.bind_contextvars(**bound)


@contextmanager
def extraction_context(**fields: Any) -> Iterator[None]:
    """Bind fields (source, url) to every log entry emitted inside the block, strategies included."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
