"""Flush: delete every entry reachable from a set of tags, then the tags."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from tagcache_core.constants import DEFAULT_CHUNK_SIZE
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation
from tagcache_ops.any_tag.get_tagged_keys import GetTaggedKeys
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()


class Flush(AnyTagOperation):
    """Tag-scoped bulk delete.

    Member keys of every tag are buffered into deduplicated chunks; each
    chunk DELs the reverse indexes and UNLINKs the entries. Then the tag
    hashes are deleted and the tags leave the registry. Other tags that
    still reference a flushed key keep an orphan field until prune() runs.
    """

    def __init__(
        self,
        context: RedisStoreContext,
        serialization: Serializer | None = None,
        mode: TopologyMode | None = None,
        tagged_keys: GetTaggedKeys | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize with the key enumerator and the delete chunk size."""
        super().__init__(context, serialization, mode)
        self._tagged_keys = tagged_keys or GetTaggedKeys(context, serialization, mode)
        self._chunk_size = chunk_size

    @traced_operation("flush")
    async def execute(self, tags: Iterable[object]) -> bool:
        """Flush the union of ``tags``. Flushing an unknown tag is a no-op.

        One chunk buffer spans every tag, and a key already deleted earlier
        in the call is skipped, so a key under several of the tags is
        deleted once. Tag hashes and registry members go after the last
        chunk.
        """
        names = normalize_tags(tags)
        done: set[str] = set()
        buffer: list[str] = []
        for tag in names:
            async for key in self._tagged_keys.execute(tag):
                if key in done:
                    continue
                done.add(key)
                buffer.append(key)
                if len(buffer) >= self._chunk_size:
                    await self._delete_chunk(buffer)
                    buffer = []
        if buffer:
            await self._delete_chunk(buffer)
        await self._drop_tags(names)
        logger.info("tags_flushed", tags=names, keys=len(done))
        return True

    async def _delete_chunk(self, keys: list[str]) -> None:
        reverse_indexes = [self._keys.reverse_index(key) for key in keys]
        entries = [self._keys.entry(key) for key in keys]
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                await conn.delete(*reverse_indexes)
                await conn.unlink(*entries)
            else:
                await self._delete_pipelined(conn, reverse_indexes, entries)

    async def _delete_pipelined(
        self, conn: Any, reverse_indexes: list[str], entries: list[str]  # noqa: ANN401
    ) -> None:
        async with conn.pipeline(transaction=False) as pipe:
            pipe.delete(*reverse_indexes)
            pipe.unlink(*entries)
            await pipe.execute()

    async def _drop_tags(self, tags: list[str]) -> None:
        if not tags:
            return
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                for tag in tags:
                    await conn.delete(self._keys.tag_hash(tag))
                    await conn.zrem(self._keys.registry, tag)
            else:
                async with conn.pipeline(transaction=False) as pipe:
                    for tag in tags:
                        pipe.delete(self._keys.tag_hash(tag))
                        pipe.zrem(self._keys.registry, tag)
                    await pipe.execute()
