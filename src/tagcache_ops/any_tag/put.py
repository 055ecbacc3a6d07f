"""Put: store a value with a TTL under a set of tags."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()


class Put(AnyTagOperation):
    """Write ``key`` for ``seconds`` (at least 1) and move it to ``tags``."""

    @traced_operation("put")
    async def execute(
        self,
        key: str,
        value: Any,  # noqa: ANN401
        seconds: int,
        tags: Iterable[object],
    ) -> bool:
        """Store the entry and relink its tag structures."""
        names = normalize_tags(tags)
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                await self._write_with_ttl_cluster(conn, key, value, seconds, names)
            else:
                await self._write_with_ttl_script(conn, key, value, seconds, names)
        logger.debug("tagged_put", key=key, ttl=seconds, tags=names, mode=self._mode.value)
        return True
