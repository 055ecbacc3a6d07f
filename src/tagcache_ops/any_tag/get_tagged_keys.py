"""GetTaggedKeys: lazily enumerate the member keys of one tag."""

from __future__ import annotations

from collections.abc import AsyncIterator

import structlog

from tagcache_core.constants import DEFAULT_SCAN_COUNT, DEFAULT_TAGGED_KEYS_THRESHOLD
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.keys import decode
from tagcache_ops.any_tag.base import AnyTagOperation, decode_members

logger = structlog.get_logger()


class GetTaggedKeys(AnyTagOperation):
    """Yield the field names of a tag hash.

    Small hashes (``HLEN`` at or below the threshold) are read with one
    ``HKEYS``. Larger ones are walked with ``HSCAN``; each batch checks out
    the connection on its own, so nothing is held while the caller consumes
    a batch. HSCAN may repeat a field. Each call starts a fresh scan.
    """

    def __init__(
        self,
        context: RedisStoreContext,
        serialization: Serializer | None = None,
        mode: TopologyMode | None = None,
        threshold: int = DEFAULT_TAGGED_KEYS_THRESHOLD,
        scan_count: int = DEFAULT_SCAN_COUNT,
    ) -> None:
        """Initialize with the HKEYS/HSCAN switch-over size and the scan hint."""
        super().__init__(context, serialization, mode)
        self._threshold = threshold
        self._scan_count = scan_count

    async def execute(self, tag: str) -> AsyncIterator[str]:
        """Yield every key currently registered under ``tag``."""
        tag_hash = self._keys.tag_hash(str(tag))

        async with self._context.connection() as conn:
            size = await conn.hlen(tag_hash)
            fields = await conn.hkeys(tag_hash) if 0 < size <= self._threshold else None

        if size == 0:
            return
        if fields is not None:
            for key in decode_members(fields):
                yield key
            return

        logger.debug("tagged_keys_scan", tag=tag, size=size)
        cursor = 0
        while True:
            async with self._context.connection() as conn:
                cursor, batch = await conn.hscan(tag_hash, cursor, count=self._scan_count)
            for field in batch:
                yield decode(field)
            if int(cursor) == 0:
                break
