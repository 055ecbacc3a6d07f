"""GetTagItems: fetch the values of every key reachable from a set of tags."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Iterable
from typing import Any

from tagcache_core.constants import DEFAULT_CHUNK_SIZE
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation
from tagcache_ops.any_tag.get_tagged_keys import GetTaggedKeys


class GetTagItems(AnyTagOperation):
    """Yield ``(key, value)`` pairs for the union of the given tags.

    Keys are deduplicated across tags and read in batches: one ``MGET`` in
    standalone mode, a non-transactional pipeline of ``GET``s in cluster
    mode. Keys whose entry has expired or been deleted are skipped.
    """

    def __init__(
        self,
        context: RedisStoreContext,
        serialization: Serializer | None = None,
        mode: TopologyMode | None = None,
        tagged_keys: GetTaggedKeys | None = None,
        batch_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """Initialize with the key enumerator and the MGET batch size."""
        super().__init__(context, serialization, mode)
        self._tagged_keys = tagged_keys or GetTaggedKeys(context, serialization, mode)
        self._batch_size = batch_size

    async def execute(self, tags: Iterable[object]) -> AsyncGenerator[tuple[str, Any], None]:
        """Yield each live entry once."""
        seen: set[str] = set()
        batch: list[str] = []
        for tag in normalize_tags(tags):
            async for key in self._tagged_keys.execute(tag):
                if key in seen:
                    continue
                seen.add(key)
                batch.append(key)
                if len(batch) >= self._batch_size:
                    for item in await self._fetch(batch):
                        yield item
                    batch = []
        if batch:
            for item in await self._fetch(batch):
                yield item

    async def _fetch(self, keys: list[str]) -> list[tuple[str, Any]]:
        entries = [self._keys.entry(key) for key in keys]
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                values = await self._get_each(conn, entries)
            else:
                values = await conn.mget(entries)
        return [
            (key, self._serialization.unserialize(raw))
            for key, raw in zip(keys, values, strict=True)
            if raw is not None
        ]

    async def _get_each(self, conn: Any, entries: list[str]) -> list[Any]:  # noqa: ANN401
        # Entries hash to different slots; a cluster pipeline routes each GET.
        async with conn.pipeline(transaction=False) as pipe:
            for entry in entries:
                pipe.get(entry)
            return await pipe.execute()
