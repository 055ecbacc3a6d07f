"""Increment and Decrement: adjust an integer entry and keep its tags current."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, ClassVar

import structlog

from tagcache_core.constants import MAX_EXPIRY
from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation, now
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()


class _CounterOperation(AnyTagOperation):
    """INCRBY/DECRBY followed by a tag relink.

    The entry keeps whatever TTL it already had. Tag fields and the reverse
    index get that TTL when there is one; otherwise they persist and the
    registry score is the forever sentinel.
    """

    command: ClassVar[str]
    script_name: ClassVar[str]

    async def _apply(self, key: str, delta: int, tags: Iterable[object]) -> int:
        names = normalize_tags(tags)
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                value = await self._apply_cluster(conn, key, delta, names)
            else:
                value = await self._context.scripts.execute(
                    conn,
                    self.script_name,
                    keys=[self._keys.entry(key), self._keys.reverse_index(key)],
                    args=[
                        delta,
                        self._keys.tag_prefix,
                        self._keys.registry,
                        now(),
                        key,
                        self._keys.tag_hash_suffix,
                        *names,
                    ],
                )
        logger.debug("tagged_counter", command=self.command, key=key, delta=delta, value=value)
        return int(value)

    async def _apply_cluster(
        self, conn: Any, key: str, delta: int, tags: list[str]  # noqa: ANN401
    ) -> int:
        entry = self._keys.entry(key)
        async with conn.pipeline(transaction=True) as pipe:
            getattr(pipe, self.command)(entry, delta)
            pipe.ttl(entry)
            value, ttl = await pipe.execute()

        old_tags = await self._old_tags(conn, key)
        if ttl > 0:
            await self._relink_tags_cluster(conn, key, old_tags, tags, ttl, now() + ttl)
        else:
            await self._relink_tags_cluster(conn, key, old_tags, tags, None, MAX_EXPIRY)
        return int(value)


class Increment(_CounterOperation):
    """Add ``delta`` to an integer entry; a missing key starts at 0."""

    command = "incrby"
    script_name = "increment_with_tags"

    @traced_operation("increment")
    async def execute(self, key: str, delta: int, tags: Iterable[object]) -> int:
        """Return the new value."""
        return await self._apply(key, delta, tags)


class Decrement(_CounterOperation):
    """Subtract ``delta`` from an integer entry; a missing key starts at 0."""

    command = "decrby"
    script_name = "decrement_with_tags"

    @traced_operation("decrement")
    async def execute(self, key: str, delta: int, tags: Iterable[object]) -> int:
        """Return the new value."""
        return await self._apply(key, delta, tags)
