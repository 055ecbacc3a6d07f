"""Add: store a value only if the key does not exist yet."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from tagcache_core.models.results import WriteResult
from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation, now
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()


class Add(AnyTagOperation):
    """Conditional write. Tag structures are only touched when the entry was created."""

    @traced_operation("add")
    async def execute(
        self,
        key: str,
        value: Any,  # noqa: ANN401
        seconds: int,
        tags: Iterable[object],
    ) -> WriteResult:
        """Run SET NX EX, then relink tags on success."""
        names = normalize_tags(tags)
        ttl = max(1, seconds)
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                added = await self._add_cluster(conn, key, value, ttl, names)
            else:
                added = await self._add_script(conn, key, value, ttl, names)

        if not added:
            logger.debug("tagged_add_skipped", key=key)
            return WriteResult.already_exists()
        logger.debug("tagged_add", key=key, ttl=ttl, tags=names, mode=self._mode.value)
        return WriteResult.added()

    async def _add_script(
        self, conn: Any, key: str, value: Any, ttl: int, tags: list[str]  # noqa: ANN401
    ) -> bool:
        reply = await self._context.scripts.execute(
            conn,
            "add_with_tags",
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
        return bool(reply)

    async def _add_cluster(
        self, conn: Any, key: str, value: Any, ttl: int, tags: list[str]  # noqa: ANN401
    ) -> bool:
        created = await conn.set(
            self._keys.entry(key), self._serialization.serialize(value), ex=ttl, nx=True
        )
        if not created:
            return False
        old_tags = await self._old_tags(conn, key)
        await self._relink_tags_cluster(conn, key, old_tags, tags, ttl, now() + ttl)
        return True
