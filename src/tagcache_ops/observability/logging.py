"""structlog setup for the cache engine and CLI.

Engine modules only call ``structlog.get_logger()``; nothing is configured
until an application (or the CLI) calls ``configure_logging``.
"""

from __future__ import annotations

import logging
from typing import IO, TYPE_CHECKING, Any

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars

if TYPE_CHECKING:
    from structlog.types import EventDict, Processor, WrappedLogger

    from tagcache_core.config.settings import Settings

# Third-party loggers that are chatty below WARNING
QUIET_LOGGERS = ("redis",)


def decode_redis_bytes(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Render raw Redis replies (keys, members) as text instead of b'...'."""
    for name, value in event_dict.items():
        if isinstance(value, bytes):
            event_dict[name] = value.decode("utf-8", errors="replace")
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        decode_redis_bytes,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(settings: Settings, stream: IO[str] | None = None) -> None:
    """Route structlog and stdlib logging through one handler on the root logger.

    ``log_format`` picks JSON lines or the console renderer. ``stream``
    defaults to stderr.
    """
    shared = _shared_processors()
    renderer: Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )
    )

    level = _resolve_level(settings.log_level)
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def bind_cache_context(**values: Any) -> None:  # noqa: ANN401
    """Attach fields such as the key prefix or topology to every later log line."""
    bind_contextvars(**values)


def clear_cache_context() -> None:
    """Drop every field bound with ``bind_cache_context``."""
    clear_contextvars()


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelNamesMapping().get(level_name.upper())
    return level if level is not None else logging.INFO
