"""Redis-backed store that owns the client and hands out tagged caches."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any

import structlog

from tagcache_core.config.settings import Settings
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.results import PruneStats
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.client import create_redis_client
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.serialization import Serialization
from tagcache_ops.operations import AnyTagOperations
from tagcache_ops.tagged_cache import AnyTaggedCache, AnyTagSet, key_name

logger = structlog.get_logger()


class RedisTagStore:
    """Entry point for tagged caching on one Redis deployment and prefix."""

    def __init__(
        self,
        client: Any,  # noqa: ANN401
        settings: Settings | None = None,
        prefix: str | None = None,
        mode: TopologyMode | None = None,
        serialization: Serializer | None = None,
    ) -> None:
        """Initialize over an existing client; the prefix defaults to settings."""
        self._settings = settings or Settings()
        self._context = RedisStoreContext(
            client,
            prefix=self._settings.cache_prefix if prefix is None else prefix,
            mode=mode,
        )
        self._serialization = serialization or Serialization()
        self._ops = AnyTagOperations(
            self._context, self._settings, self._serialization, self._context.mode
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> RedisTagStore:
        """Build the client from settings and wrap it."""
        store = cls(create_redis_client(settings), settings)
        logger.info("tag_store_ready", prefix=store.prefix, mode=store.mode.value)
        return store

    @property
    def context(self) -> RedisStoreContext:
        """Connection context shared by every operation."""
        return self._context

    @property
    def prefix(self) -> str:
        """Key prefix of this store."""
        return self._context.prefix

    @property
    def mode(self) -> TopologyMode:
        """Topology operations run in."""
        return self._context.mode

    @property
    def any_tag_ops(self) -> AnyTagOperations:
        """The any-tag operations bound to this store."""
        return self._ops

    async def get(self, key: str | Enum, default: Any = None) -> Any:  # noqa: ANN401
        """Read an entry by its plain key, regardless of its tags."""
        async with self._context.connection() as conn:
            raw = await conn.get(self._context.keys.entry(key_name(key)))
        if raw is None:
            return default
        return self._serialization.unserialize(raw)

    def tags(self, *names: object | Iterable[object]) -> AnyTaggedCache:
        """Tagged cache over the given names, passed one by one or as one iterable."""
        if len(names) == 1 and not isinstance(names[0], str | bytes) and isinstance(names[0], Iterable):
            flat: Iterable[object] = names[0]
        else:
            flat = names
        return AnyTaggedCache(
            self._ops,
            AnyTagSet(self._ops, flat),
            add_default_ttl=self._settings.add_default_ttl_seconds,
        )

    async def prune(self, scan_count: int | None = None) -> PruneStats:
        """Reclaim orphaned tag fields and expired registry members."""
        return await self._ops.prune.execute(scan_count or self._settings.prune_scan_count)

    async def aclose(self) -> None:
        """Close the underlying client."""
        await self._context.aclose()
