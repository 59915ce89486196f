"""
Structured logging for tabspine.

Library modules call ``get_logger(__name__)`` and emit dotted event names
with key/value context.  Applications configure output once, either
directly with ``configure_logging()`` or from ``TabspineSettings`` with
``configure_from_settings()``; the library never configures logging on its
own.

Processor chain::

    TimeStamper (iso, utc)          optional
    merge_contextvars               ← LogContext / bind_context
    add_log_level                   logger_name bound by get_logger
    add service name
    redact credentials              token / api_key / authorization
    JSONRenderer | ConsoleRenderer

Example:
    >>> from tabspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=True)
    >>> log = get_logger("tabspine.example")
    >>> log.info("migration.applied", version=3, name="add_status")

Tags:
    logging, structlog, tabspine
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from contextvars import Token
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from tabspine.core.settings import TabspineSettings

REDACTED = "***"
SECRET_KEYS = frozenset({"token", "api_key", "authorization", "access_token", "auth"})


def _redact_credentials(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _service_processor(service: str) -> Processor:
    def add_service(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def _level_number(level: str) -> int:
    number = logging.getLevelName(level.upper())
    if not isinstance(number, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return number


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "tabspine",
    add_timestamp: bool = True,
) -> None:
    """Configure structlog output for the process.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        json_format: True for JSON lines, False for the console renderer,
            None to pick JSON when stderr is not a terminal.
        service: Value of the ``service`` key on every event.
        add_timestamp: Prefix events with an ISO-8601 UTC timestamp.
    """
    if json_format is None:
        json_format = not sys.stderr.isatty()

    processors: list[Processor] = []
    if add_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _service_processor(service),
        _redact_credentials,
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_number(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: TabspineSettings) -> None:
    """Apply ``log_level`` and ``log_format`` from settings."""
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_format == "json",
    )


def get_logger(name: str | None = None) -> Any:
    """Module logger; events carry the name as ``logger_name``."""
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(name, logger_name=name)


def bind_context(**kwargs: Any) -> Mapping[str, Token[Any]]:
    """Bind keys onto every subsequent event in this task; returns reset tokens."""
    return structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class LogContext:
    """Scoped context binding, usable with ``with`` and ``async with``.

    On exit the previous values are restored, so nested scopes that bind the
    same key do not clear the outer one.

    Example:
        async with LogContext(migration_version=3):
            logger.info("migration.applied")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs
        self._tokens: Mapping[str, Token[Any]] = {}

    def __enter__(self) -> LogContext:
        self._tokens = bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.reset_contextvars(**self._tokens)

    async def __aenter__(self) -> LogContext:
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


__all__ = [
    "configure_logging",
    "configure_from_settings",
    "get_logger",
    "bind_context",
    "unbind_context",
    "LogContext",
]
