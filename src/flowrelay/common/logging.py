"""Structured logging for the relay.

Everything goes to stderr; stdout belongs to the JSON record sink.
Records carry the relay name and version, plus the exporter address
while a datagram is being handled.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.types import Processor

from flowrelay.common.config import LoggingSettings, get_settings

# Third-party loggers that are noisy below WARNING
QUIET_LOGGERS = ("dns", "asyncio")


def add_relay_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Stamp the relay name and version on every entry."""
    settings = get_settings()
    event_dict.setdefault("service", settings.app_name)
    event_dict.setdefault("version", settings.app_version)
    return event_dict


def _shared_processors(settings: LoggingSettings) -> list[Processor]:
    processors: list[Processor] = []

    if settings.include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))

    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ))

    processors.append(add_relay_context)
    return processors


def _renderer(settings: LoggingSettings) -> list[Processor]:
    if settings.format == "json":
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.rich_traceback,
        ),
    ]


def setup_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        settings: Logging settings. Uses global settings if not provided.
    """
    if settings is None:
        settings = get_settings().logging

    structlog.configure(
        processors=_shared_processors(settings) + _renderer(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.level),
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.stdlib.BoundLogger:
    """Get a logger, optionally with bound context.

    Example:
        logger = get_logger(__name__, sink="udp")
        logger.info("Sending line protocol", destination="influx:8089")
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


@contextmanager
def packet_context(**context: Any) -> Iterator[None]:
    """Bind ``context`` to every entry logged inside the block.

    Each datagram runs in its own task with its own copy of the
    context, so values never leak between datagrams.
    """
    with structlog.contextvars.bound_contextvars(**context):
        yield
