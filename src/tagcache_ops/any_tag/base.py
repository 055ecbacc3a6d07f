"""Shared plumbing for any-tag operations.

Standalone writes run as one Lua script. Cluster writes issue the same steps
as separate commands in this order: read old tags, write the entry, replace
the reverse index (MULTI/EXEC, same slot as nothing else), HDEL from tags the
key left, upsert the new tag hash fields, then one ZADD GT on the registry.
A crash between steps leaves drift that prune() reclaims.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from typing import Any

from tagcache_core.constants import MAX_EXPIRY, TAG_FIELD_VALUE
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.keys import decode
from tagcache_infra.redis.serialization import Serialization


def now() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())


def decode_members(members: Iterable[bytes | str] | None) -> list[str]:
    """Decode a SMEMBERS/ZRANGE/HKEYS reply into text."""
    return [decode(member) for member in members or ()]


class AnyTagOperation:
    """Base for operations over one cache namespace and one topology."""

    def __init__(
        self,
        context: RedisStoreContext,
        serialization: Serializer | None = None,
        mode: TopologyMode | None = None,
    ) -> None:
        """Initialize; the mode defaults to the one the context resolved."""
        self._context = context
        self._keys = context.keys
        self._serialization = serialization if serialization is not None else Serialization()
        self._mode = mode if mode is not None else context.mode

    @property
    def mode(self) -> TopologyMode:
        """Topology this operation was built for."""
        return self._mode

    # --- standalone: one script per write ---------------------------------

    async def _write_with_ttl_script(
        self, conn: Any, key: str, value: Any, seconds: int, tags: Sequence[str]  # noqa: ANN401
    ) -> None:
        ttl = max(1, seconds)
        await self._context.scripts.execute(
            conn,
            "store_with_tags",
            keys=[self._keys.entry(key), self._keys.reverse_index(key)],
            args=[
                self._serialization.serialize_for_script(value),
                ttl,
                self._keys.tag_prefix,
                self._keys.registry,
                now(),
                key,
                self._keys.tag_hash_suffix,
                *tags,
            ],
        )

    async def _write_forever_script(
        self, conn: Any, key: str, value: Any, tags: Sequence[str]  # noqa: ANN401
    ) -> None:
        await self._context.scripts.execute(
            conn,
            "store_forever_with_tags",
            keys=[self._keys.entry(key), self._keys.reverse_index(key)],
            args=[
                self._serialization.serialize_for_script(value),
                self._keys.tag_prefix,
                self._keys.registry,
                key,
                self._keys.tag_hash_suffix,
                *tags,
            ],
        )

    # --- cluster: sequential commands -------------------------------------

    async def _write_with_ttl_cluster(
        self, conn: Any, key: str, value: Any, seconds: int, tags: Sequence[str]  # noqa: ANN401
    ) -> None:
        ttl = max(1, seconds)
        old_tags = await self._old_tags(conn, key)
        await conn.set(self._keys.entry(key), self._serialization.serialize(value), ex=ttl)
        await self._relink_tags_cluster(conn, key, old_tags, tags, ttl, now() + ttl)

    async def _write_forever_cluster(
        self, conn: Any, key: str, value: Any, tags: Sequence[str]  # noqa: ANN401
    ) -> None:
        old_tags = await self._old_tags(conn, key)
        await conn.set(self._keys.entry(key), self._serialization.serialize(value))
        await self._relink_tags_cluster(conn, key, old_tags, tags, None, MAX_EXPIRY)

    async def _old_tags(self, conn: Any, key: str) -> list[str]:  # noqa: ANN401
        return decode_members(await conn.smembers(self._keys.reverse_index(key)))

    async def _relink_tags_cluster(
        self,
        conn: Any,  # noqa: ANN401
        key: str,
        old_tags: Sequence[str],
        tags: Sequence[str],
        ttl: int | None,
        expiry: int,
    ) -> None:
        """Move a freshly written key from its old tag set to ``tags``.

        ``ttl`` of None means the entry has no expiry: fields are written
        without one and the reverse index is left persistent.
        """
        await self._replace_reverse_index(conn, key, tags, ttl)

        new_tags = set(tags)
        for tag in old_tags:
            if tag not in new_tags:
                await conn.hdel(self._keys.tag_hash(tag), key)

        for tag in tags:
            tag_hash = self._keys.tag_hash(tag)
            if ttl is None:
                await conn.hset(tag_hash, key, TAG_FIELD_VALUE)
            else:
                await conn.hsetex(tag_hash, mapping={key: TAG_FIELD_VALUE}, ex=ttl)

        await self._touch_registry(conn, tags, expiry)

    async def _replace_reverse_index(
        self, conn: Any, key: str, tags: Sequence[str], ttl: int | None  # noqa: ANN401
    ) -> None:
        tags_key = self._keys.reverse_index(key)
        async with conn.pipeline(transaction=True) as pipe:
            pipe.delete(tags_key)
            if tags:
                pipe.sadd(tags_key, *tags)
                if ttl is not None:
                    pipe.expire(tags_key, ttl)
            await pipe.execute()

    async def _touch_registry(self, conn: Any, tags: Iterable[str], expiry: int) -> None:  # noqa: ANN401
        """Raise each tag's registry score to ``expiry``; never lowers it."""
        mapping = dict.fromkeys(tags, expiry)
        if mapping:
            await conn.zadd(self._keys.registry, mapping, gt=True)
