"""Abstract connection context interface."""

from __future__ import annotations

from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol, runtime_checkable

from tagcache_core.models.topology import TopologyMode


@runtime_checkable
class ConnectionContext(Protocol):
    """Hands out Redis connections to operations.

    Each ``async with connection()`` block is one checkout. Callers must not
    hold a checkout across a point where control returns to their own caller.
    """

    @property
    def prefix(self) -> str:
        """Key prefix for this cache namespace."""
        ...

    @property
    def mode(self) -> TopologyMode:
        """Topology resolved for the underlying client."""
        ...

    def connection(self) -> AbstractAsyncContextManager[Any]:
        """Check out a connection for one group of round trips."""
        ...
