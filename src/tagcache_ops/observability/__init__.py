"""Observability: structured logging and tracing."""

from tagcache_ops.observability.logging import (
    bind_cache_context,
    clear_cache_context,
    configure_logging,
)
from tagcache_ops.observability.tracing import (
    configure_tracing,
    disable_tracing,
    set_tracer,
    trace_command,
    traced_operation,
)

__all__ = [
    "bind_cache_context",
    "clear_cache_context",
    "configure_logging",
    "configure_tracing",
    "disable_tracing",
    "set_tracer",
    "trace_command",
    "traced_operation",
]
