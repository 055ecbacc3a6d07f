"""OpenTelemetry spans around cache operations and CLI commands.

Tracing is off unless ``configure_tracing`` installs a tracer. While it is
off, the decorator and context manager below cost one ``None`` check.
"""

from __future__ import annotations

import time
from collections.abc import AsyncGenerator, Callable, Coroutine
from contextlib import asynccontextmanager
from functools import wraps
from typing import TYPE_CHECKING, Any, ParamSpec, TypeVar

import structlog

if TYPE_CHECKING:
    from tagcache_core.config.settings import Settings

logger = structlog.get_logger()

TRACER_NAME = "tagcache"

# Installed by configure_tracing() or set_tracer(); None while disabled
_tracer: Any = None

P = ParamSpec("P")
R = TypeVar("R")


def configure_tracing(settings: Settings) -> None:
    """Install a tracer for ``settings.otel_exporter`` (none, console or otlp)."""
    global _tracer

    if settings.otel_exporter == "none":
        _tracer = None
        return

    # opentelemetry is only imported once an exporter is chosen
    from opentelemetry import trace
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider

    provider = TracerProvider(
        resource=Resource.create({"service.name": settings.otel_service_name})
    )
    provider.add_span_processor(_span_processor(settings))
    trace.set_tracer_provider(provider)
    _tracer = trace.get_tracer(TRACER_NAME)
    logger.info(
        "tracing_configured",
        exporter=settings.otel_exporter,
        service=settings.otel_service_name,
    )


def _span_processor(settings: Settings) -> Any:  # noqa: ANN401
    if settings.otel_exporter == "otlp":
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        return BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint))

    from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

    return SimpleSpanProcessor(ConsoleSpanExporter())


def set_tracer(tracer: Any) -> None:  # noqa: ANN401
    """Install a tracer directly, e.g. one backed by an in-memory exporter."""
    global _tracer
    _tracer = tracer


def disable_tracing() -> None:
    """Stop creating spans."""
    global _tracer
    _tracer = None


def traced_operation(
    name: str,
) -> Callable[
    [Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]
]:
    """Wrap an operation's ``execute`` coroutine in a ``tagcache.<name>`` span.

    The span carries the operation name, the topology mode of the bound
    operation (when the first argument has one), the outcome and the
    elapsed time in milliseconds.
    """

    def decorator(
        fn: Callable[P, Coroutine[Any, Any, R]],
    ) -> Callable[P, Coroutine[Any, Any, R]]:
        @wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            if _tracer is None:
                return await fn(*args, **kwargs)

            with _tracer.start_as_current_span(f"{TRACER_NAME}.{name}") as span:
                span.set_attribute("db.system", "redis")
                span.set_attribute("cache.operation", name)
                mode = getattr(args[0], "mode", None) if args else None
                if mode is not None:
                    span.set_attribute("cache.mode", str(mode))
                start = time.perf_counter()
                try:
                    result = await fn(*args, **kwargs)
                except Exception as exc:
                    span.set_attribute("cache.status", "error")
                    span.record_exception(exc)
                    raise
                finally:
                    span.set_attribute(
                        "cache.duration_ms", round((time.perf_counter() - start) * 1000, 2)
                    )
                span.set_attribute("cache.status", "ok")
                return result

        return wrapper

    return decorator


@asynccontextmanager
async def trace_command(command: str, **attributes: Any) -> AsyncGenerator[Any, None]:  # noqa: ANN401
    """Root span for one CLI command; yields the span, or None when disabled."""
    if _tracer is None:
        yield None
        return

    with _tracer.start_as_current_span(f"{TRACER_NAME}.cli.{command}") as span:
        for key, value in attributes.items():
            span.set_attribute(f"cli.{key}", value)
        yield span
