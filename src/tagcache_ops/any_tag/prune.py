"""Prune: reclaim orphaned tag hash fields and expired registry members."""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from tagcache_core.constants import DEFAULT_PRUNE_PAUSE_MS, DEFAULT_SCAN_COUNT
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.results import PruneStats
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.keys import decode
from tagcache_ops.any_tag.base import AnyTagOperation, decode_members, now
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()


class Prune(AnyTagOperation):
    """Scan every live tag hash and drop fields whose entry no longer exists.

    Expired registry members are removed first without looking at their
    hashes; those hashes expire field by field on their own. A hash left
    empty after its orphans are removed is deleted. A short pause between
    tag hashes keeps the server responsive.
    """

    def __init__(
        self,
        context: RedisStoreContext,
        serialization: Serializer | None = None,
        mode: TopologyMode | None = None,
        pause_ms: int = DEFAULT_PRUNE_PAUSE_MS,
    ) -> None:
        """Initialize with the pause between tag hashes."""
        super().__init__(context, serialization, mode)
        self._pause = pause_ms / 1000

    @traced_operation("prune")
    async def execute(self, scan_count: int = DEFAULT_SCAN_COUNT) -> PruneStats:
        """Run one full pass and return its counters."""
        stats = PruneStats()
        async with self._context.connection() as conn:
            stats.expired_tags_removed = int(
                await conn.zremrangebyscore(self._keys.registry, "-inf", now())
            )
            tags = decode_members(await conn.zrange(self._keys.registry, 0, -1))

        for index, tag in enumerate(tags):
            if index and self._pause:
                await asyncio.sleep(self._pause)
            checked, removed, deleted = await self._clean_tag_hash(tag, scan_count)
            stats.hashes_scanned += 1
            stats.fields_checked += checked
            stats.orphans_removed += removed
            stats.empty_hashes_deleted += int(deleted)

        logger.info("prune_completed", mode=self._mode.value, **stats.model_dump())
        return stats

    async def _clean_tag_hash(self, tag: str, scan_count: int) -> tuple[int, int, bool]:
        tag_hash = self._keys.tag_hash(tag)
        checked = 0
        removed = 0
        cursor = 0
        while True:
            async with self._context.connection() as conn:
                cursor, batch = await conn.hscan(tag_hash, cursor, count=scan_count)
                fields = [decode(field) for field in batch]
                if fields:
                    checked += len(fields)
                    orphans = await self._orphans(conn, fields)
                    if orphans:
                        await conn.hdel(tag_hash, *orphans)
                        removed += len(orphans)
            if int(cursor) == 0:
                break

        # Redis drops a hash with its last field, so DEL often finds nothing.
        # It only counts as deleted when this pass emptied it.
        deleted = False
        async with self._context.connection() as conn:
            if await conn.hlen(tag_hash) == 0:
                dropped = await conn.delete(tag_hash)
                deleted = removed > 0 or dropped > 0
        if removed:
            logger.debug(
                "tag_hash_pruned", tag=tag, checked=checked, removed=removed, deleted=deleted
            )
        return checked, removed, deleted

    async def _orphans(self, conn: Any, fields: list[str]) -> list[str]:  # noqa: ANN401
        """Fields whose cache entry does not exist."""
        if self._mode.is_cluster:
            return [key for key in fields if not await conn.exists(self._keys.entry(key))]
        async with conn.pipeline(transaction=False) as pipe:
            for key in fields:
                pipe.exists(self._keys.entry(key))
            found = await pipe.execute()
        return [key for key, exists in zip(fields, found, strict=True) if not exists]
