"""PutMany: store many values with one TTL and one tag set, chunk by chunk."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from itertools import batched
from typing import Any

import structlog

from tagcache_core.constants import DEFAULT_CHUNK_SIZE, TAG_FIELD_VALUE
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation, decode_members, now
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()


class PutMany(AnyTagOperation):
    """Write a mapping of entries under the same tags.

    Each chunk reads every key's old tags first, then writes entries and
    reverse indexes, removes keys from tags they left (one HDEL per tag),
    upserts the new tag fields (one HSET + HEXPIRE per tag) and raises the
    registry with a single ZADD GT.
    """

    def __init__(
        self,
        context: RedisStoreContext,
        serialization: Serializer | None = None,
        mode: TopologyMode | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize with the number of keys written per chunk."""
        super().__init__(context, serialization, mode)
        self._chunk_size = chunk_size

    @traced_operation("put_many")
    async def execute(
        self,
        values: Mapping[str, Any],
        seconds: int,
        tags: Iterable[object],
    ) -> bool:
        """Store every entry; an empty mapping is a no-op."""
        if not values:
            return True
        names = normalize_tags(tags)
        ttl = max(1, seconds)
        chunks = 0
        async with self._context.connection() as conn:
            for chunk in batched(values.items(), self._chunk_size):
                expiry = now() + ttl
                if self._mode.is_cluster:
                    await self._write_chunk_cluster(conn, chunk, ttl, expiry, names)
                else:
                    await self._write_chunk_pipelined(conn, chunk, ttl, expiry, names)
                chunks += 1
        logger.debug("tagged_put_many", keys=len(values), chunks=chunks, tags=names)
        return True

    def _removals(
        self, keys: Sequence[str], old_tag_sets: Sequence[list[str]], tags: list[str]
    ) -> dict[str, list[str]]:
        new_tags = set(tags)
        removals: dict[str, list[str]] = defaultdict(list)
        for key, old_tags in zip(keys, old_tag_sets, strict=True):
            for tag in old_tags:
                if tag not in new_tags:
                    removals[tag].append(key)
        return removals

    async def _write_chunk_pipelined(
        self,
        conn: Any,  # noqa: ANN401
        chunk: Sequence[tuple[str, Any]],
        ttl: int,
        expiry: int,
        tags: list[str],
    ) -> None:
        keys = [key for key, _ in chunk]

        async with conn.pipeline(transaction=False) as pipe:
            for key in keys:
                pipe.smembers(self._keys.reverse_index(key))
            replies = await pipe.execute()
        removals = self._removals(keys, [decode_members(r) for r in replies], tags)

        async with conn.pipeline(transaction=False) as pipe:
            for key, value in chunk:
                tags_key = self._keys.reverse_index(key)
                pipe.set(self._keys.entry(key), self._serialization.serialize(value), ex=ttl)
                pipe.delete(tags_key)
                if tags:
                    pipe.sadd(tags_key, *tags)
                    pipe.expire(tags_key, ttl)
            for tag, removed in removals.items():
                pipe.hdel(self._keys.tag_hash(tag), *removed)
            for tag in tags:
                tag_hash = self._keys.tag_hash(tag)
                pipe.hset(tag_hash, mapping=dict.fromkeys(keys, TAG_FIELD_VALUE))
                pipe.hexpire(tag_hash, ttl, *keys)
            if tags:
                pipe.zadd(self._keys.registry, dict.fromkeys(tags, expiry), gt=True)
            await pipe.execute()

    async def _write_chunk_cluster(
        self,
        conn: Any,  # noqa: ANN401
        chunk: Sequence[tuple[str, Any]],
        ttl: int,
        expiry: int,
        tags: list[str],
    ) -> None:
        keys = [key for key, _ in chunk]
        old_tag_sets = [await self._old_tags(conn, key) for key in keys]
        removals = self._removals(keys, old_tag_sets, tags)

        for key, value in chunk:
            await conn.set(self._keys.entry(key), self._serialization.serialize(value), ex=ttl)
            await self._replace_reverse_index(conn, key, tags, ttl)

        for tag, removed in removals.items():
            await conn.hdel(self._keys.tag_hash(tag), *removed)

        for tag in tags:
            tag_hash = self._keys.tag_hash(tag)
            async with conn.pipeline(transaction=True) as pipe:
                pipe.hset(tag_hash, mapping=dict.fromkeys(keys, TAG_FIELD_VALUE))
                pipe.hexpire(tag_hash, ttl, *keys)
                await pipe.execute()

        await self._touch_registry(conn, tags, expiry)
