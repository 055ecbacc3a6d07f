"""Remember and RememberForever: read-through writes with a deferred value."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import structlog

from tagcache_core.models.results import RememberResult
from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.base import AnyTagOperation
from tagcache_ops.observability.tracing import traced_operation

logger = structlog.get_logger()

ValueFactory = Callable[[], Any | Awaitable[Any]]


async def resolve_value(callback: ValueFactory) -> Any:  # noqa: ANN401
    """Call a sync or async factory once and return its value."""
    result = callback()
    if inspect.isawaitable(result):
        result = await result
    return result


class _RememberBase(AnyTagOperation):
    """GET first; on a miss run the callback, then write through tags.

    No connection is held while the callback runs. A callback error
    propagates and nothing is written.
    """

    async def _cached(self, key: str) -> tuple[bool, Any]:
        async with self._context.connection() as conn:
            raw = await conn.get(self._keys.entry(key))
        if raw is None:
            return False, None
        return True, self._serialization.unserialize(raw)


class Remember(_RememberBase):
    """Read-through with a TTL."""

    @traced_operation("remember")
    async def execute(
        self,
        key: str,
        seconds: int,
        callback: ValueFactory,
        tags: Iterable[object],
    ) -> RememberResult:
        """Return the cached value, or compute, store and return it."""
        hit, value = await self._cached(key)
        if hit:
            logger.debug("tagged_remember_hit", key=key)
            return RememberResult(value, True)

        value = await resolve_value(callback)
        names = normalize_tags(tags)
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                await self._write_with_ttl_cluster(conn, key, value, seconds, names)
            else:
                await self._write_with_ttl_script(conn, key, value, seconds, names)
        logger.debug("tagged_remember_miss", key=key, ttl=seconds, tags=names)
        return RememberResult(value, False)


class RememberForever(_RememberBase):
    """Read-through with no expiry."""

    @traced_operation("remember_forever")
    async def execute(
        self,
        key: str,
        callback: ValueFactory,
        tags: Iterable[object],
    ) -> RememberResult:
        """Return the cached value, or compute, store forever and return it."""
        hit, value = await self._cached(key)
        if hit:
            logger.debug("tagged_remember_hit", key=key)
            return RememberResult(value, True)

        value = await resolve_value(callback)
        names = normalize_tags(tags)
        async with self._context.connection() as conn:
            if self._mode.is_cluster:
                await self._write_forever_cluster(conn, key, value, names)
            else:
                await self._write_forever_script(conn, key, value, names)
        logger.debug("tagged_remember_forever_miss", key=key, tags=names)
        return RememberResult(value, False)
