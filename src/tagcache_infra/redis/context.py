"""Store context: client, key codec, topology and scripts for one cache namespace."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.client import resolve_topology
from tagcache_infra.redis.keys import KeyCodec
from tagcache_infra.redis.scripts import ScriptRegistry, default_scripts


class RedisStoreContext:
    """Concrete ConnectionContext over a redis-py asyncio client.

    redis-py checks a pooled connection out per command (or per pipeline
    execution), so each ``connection()`` block never pins a socket beyond
    the round trips issued inside it.
    """

    def __init__(
        self,
        client: Any,  # noqa: ANN401
        prefix: str = "",
        mode: TopologyMode | None = None,
        scripts: ScriptRegistry | None = None,
    ) -> None:
        """Initialize; the topology is resolved from the client unless given."""
        self._client = client
        self._keys = KeyCodec(prefix)
        self._mode = mode if mode is not None else resolve_topology(client)
        self._scripts = scripts if scripts is not None else default_scripts()

    @property
    def prefix(self) -> str:
        """Key prefix for this cache namespace."""
        return self._keys.prefix

    @property
    def mode(self) -> TopologyMode:
        """Topology resolved for the underlying client."""
        return self._mode

    @property
    def keys(self) -> KeyCodec:
        """Key naming for this namespace."""
        return self._keys

    @property
    def scripts(self) -> ScriptRegistry:
        """Lua scripts available to standalone operations."""
        return self._scripts

    @property
    def client(self) -> Any:  # noqa: ANN401
        """The underlying redis-py client."""
        return self._client

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[Any, None]:
        """Check out the client for one group of round trips."""
        yield self._client

    async def aclose(self) -> None:
        """Close the underlying client and its pool."""
        await self._client.aclose()
