"""
Structured logging for syncspine.

Manifesto:
    A fetch run fans out into many concurrent resolver tasks.  Every log line
    is a structlog event carrying the ``fetch_id`` it belongs to and, inside a
    table scope, the ``table``.  Events are named with dotted verbs
    (``fetch.table.resolved``, ``storage.copy_from``) and carry their data as
    key/value fields.

    Logs go to stderr, so command output such as ``syncspine fetch --json``
    stays machine readable on stdout.

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="syncspine")
            │
            ▼
        merge_contextvars → add_log_level → add_logger_name → TimeStamper(utc)
            → ServiceMetadata
            → ecs_field_names → dict_tracebacks → JSONRenderer   (json)
            → set_exc_info → ConsoleRenderer                       (console)

Examples:
    >>> from syncspine.core.logging import LogContext, configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> with LogContext(fetch_id="f-1", table="accounts"):
    ...     logger.info("fetch.table.resolved", resources=12)

Tags:
    logging, structlog, observability, contextvars, syncspine
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import Token
from typing import IO, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from syncspine.core.errors import ConfigError

# structlog key -> ECS field
_ECS_FIELDS = {
    "timestamp": "@timestamp",
    "level": "log.level",
    "logger": "log.logger",
}


class ServiceMetadata:
    """Processor stamping every event with ``service.name`` (and version)."""

    def __init__(self, service: str, version: str | None = None):
        self.service = service
        self.version = version

    def __call__(self, logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service.name", self.service)
        if self.version:
            event_dict.setdefault("service.version", self.version)
        return event_dict


def ecs_field_names(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename structlog's standard keys to their ECS equivalents."""
    for key, ecs_key in _ECS_FIELDS.items():
        if key in event_dict:
            event_dict[ecs_key] = event_dict.pop(key)
    return event_dict


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ConfigError(f"unknown log level {level!r}")
    return number


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "syncspine",
    *,
    version: str | None = None,
    stream: IO[str] | None = None,
) -> None:
    """Configure structlog and the stdlib root handler.

    Args:
        level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON lines when True, console output when False,
            JSON unless ``stream`` is a TTY when None
        service: Value of ``service.name`` on every event
        version: Optional ``service.version``
        stream: Where logs are written (stderr by default)

    Raises:
        ConfigError: for an unknown level name.
    """
    threshold = _level_number(level)
    stream = stream or sys.stderr
    is_tty = stream.isatty()
    if json_format is None:
        json_format = not is_tty

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        ServiceMetadata(service, version),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_format:
        processors += [ecs_field_names, structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=is_tty)]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(threshold),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    logging.basicConfig(format="%(message)s", stream=stream, level=threshold, force=True)


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name)


class LogContext:
    """Bind contextvars for the duration of a ``with`` / ``async with`` block.

    Values bound by an enclosing context are restored on exit, so nested
    scopes (a run, then one of its tables) unwind correctly.
    """

    def __init__(self, **values: Any):
        self._values = values
        self._tokens: Mapping[str, Token[Any]] = {}

    def __enter__(self) -> LogContext:
        self._tokens = structlog.contextvars.bind_contextvars(**self._values)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


__all__ = ["LogContext", "ServiceMetadata", "configure_logging", "ecs_field_names", "get_logger"]
