"""Forever: store a value with no expiry under a set of tags."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import structlog

from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()


class Forever(AnyTagOperation):
    """Write ``key`` without a TTL; its tags are registered with the forever score."""

    @traced_operation("forever")
    async def execute(self, key: str, value: Any, tags: Iterable[object]) -> bool:  # noqa: ANN401
        """Store the entry and relink its tag structures."""
        names = normalize_tags(tags)
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                await self._write_forever_cluster(conn, key, value, names)
            else:
                await self._write_forever_script(conn, key, value, names)
        logger.debug("tagged_forever", key=key, tags=names, mode=self._mode.value)
        return True
