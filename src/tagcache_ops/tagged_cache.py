"""Tag-scoped cache façade: write and flush through a set of any-mode tags."""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator, Iterable, Mapping
from datetime import datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from tagcache_core.exceptions import UnsupportedTagOperationError
from tagcache_core.models.results import WriteResult
from tagcache_infra.redis.keys import normalize_tags
from tagcache_ops.any_tag.remember import ValueFactory, resolve_value

if TYPE_CHECKING:
    from tagcache_ops.operations import AnyTagOperations

logger = structlog.get_logger()

Ttl = int | timedelta | datetime


def ttl_seconds(ttl: Ttl) -> int:
    """Convert a TTL to whole seconds; an absolute time counts down from now."""
    if isinstance(ttl, datetime):
        return int((ttl - datetime.now(ttl.tzinfo)).total_seconds())
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return int(ttl)


def key_name(key: str | Enum) -> str:
    """Plain string form of a cache key; enum members use their value."""
    if isinstance(key, Enum):
        return str(key.value)
    return str(key)


class AnyTagSet:
    """A normalized set of tag names bound to the operations that flush them."""

    def __init__(self, ops: AnyTagOperations, names: Iterable[object]) -> None:
        """Initialize; names become strings with duplicates dropped."""
        self._ops = ops
        self._names = normalize_tags(names)

    @property
    def names(self) -> list[str]:
        """Tag names in first-seen order."""
        return list(self._names)

    async def flush(self) -> None:
        """Delete every entry reachable from these tags, then the tags."""
        await self._ops.flush.execute(self._names)

    def keys(self) -> AsyncIterator[str]:
        """Member keys of every tag; a key in several tags appears once per tag."""
        return self._iter_keys()

    async def _iter_keys(self) -> AsyncIterator[str]:
        for name in self._names:
            async for key in self._ops.get_tagged_keys.execute(name):
                yield key

    def __repr__(self) -> str:
        return f"AnyTagSet({self._names!r})"


class AnyTaggedCache:
    """Writes entries under every tag in a set; reads go to the store directly.

    A key written here can be read with the store's ``get`` under the same
    name. Reading, checking or forgetting through tags is refused because a
    key belongs to the union of its tags, not to any one tag namespace.
    """

    def __init__(self, ops: AnyTagOperations, tags: AnyTagSet, add_default_ttl: int) -> None:
        """Initialize with the tag set and the TTL ``add`` uses when none is given."""
        self._ops = ops
        self._tags = tags
        self._add_default_ttl = add_default_ttl

    @property
    def tags(self) -> AnyTagSet:
        """The tag set every write goes to."""
        return self._tags

    # --- refused reads ----------------------------------------------------

    async def get(self, key: str | Enum, default: Any = None) -> Any:  # noqa: ANN401
        """Not available through tags."""
        msg = "Cannot get items via tags in any mode; read the key from the store directly"
        raise UnsupportedTagOperationError(msg)

    async def many(self, keys: Iterable[str]) -> dict[str, Any]:
        """Not available through tags."""
        msg = "Cannot get items via tags in any mode; read the keys from the store directly"
        raise UnsupportedTagOperationError(msg)

    async def has(self, key: str | Enum) -> bool:
        """Not available through tags."""
        msg = "Cannot check existence via tags in any mode; check the key on the store"
        raise UnsupportedTagOperationError(msg)

    async def pull(self, key: str | Enum, default: Any = None) -> Any:  # noqa: ANN401
        """Not available through tags."""
        msg = "Cannot pull items via tags in any mode; read the key from the store directly"
        raise UnsupportedTagOperationError(msg)

    async def forget(self, key: str | Enum) -> bool:
        """Not available through tags."""
        msg = "Cannot forget items via tags in any mode; use flush() to remove tagged items"
        raise UnsupportedTagOperationError(msg)

    # --- writes -----------------------------------------------------------

    async def put(
        self,
        key: str | Enum | Mapping[str, Any],
        value: Any = None,  # noqa: ANN401
        ttl: Ttl | None = None,
    ) -> bool:
        """Store under every tag. A mapping key stores many entries, ``value`` is then the TTL."""
        if isinstance(key, Mapping):
            return await self.put_many(key, value)
        name = key_name(key)
        if ttl is None:
            return await self.forever(name, value)
        seconds = ttl_seconds(ttl)
        if seconds <= 0:
            return False
        result = await self._ops.put.execute(name, value, seconds, self._tags.names)
        logger.debug("key_written", key=name, ttl=seconds)
        return result

    async def put_many(self, values: Mapping[str | Enum, Any], ttl: Ttl | None = None) -> bool:
        """Store several entries under every tag."""
        named = {key_name(key): value for key, value in values.items()}
        if ttl is None:
            results = [await self.forever(key, value) for key, value in named.items()]
            return all(results)
        seconds = ttl_seconds(ttl)
        if seconds <= 0:
            return False
        result = await self._ops.put_many.execute(named, seconds, self._tags.names)
        logger.debug("keys_written", keys=len(named), ttl=seconds)
        return result

    async def add(self, key: str | Enum, value: Any, ttl: Ttl | None = None) -> WriteResult:  # noqa: ANN401
        """Store only if the key is absent."""
        name = key_name(key)
        if ttl is None:
            seconds = self._add_default_ttl
        else:
            seconds = ttl_seconds(ttl)
            if seconds <= 0:
                return WriteResult.failure(f"non-positive ttl: {seconds}")
        return await self._ops.add.execute(name, value, seconds, self._tags.names)

    async def forever(self, key: str | Enum, value: Any) -> bool:  # noqa: ANN401
        """Store with no expiry."""
        name = key_name(key)
        result = await self._ops.forever.execute(name, value, self._tags.names)
        logger.debug("key_written", key=name, ttl=None)
        return result

    async def increment(self, key: str | Enum, by: int = 1) -> int:
        """Add to an integer entry and return the new value."""
        return await self._ops.increment.execute(key_name(key), by, self._tags.names)

    async def decrement(self, key: str | Enum, by: int = 1) -> int:
        """Subtract from an integer entry and return the new value."""
        return await self._ops.decrement.execute(key_name(key), by, self._tags.names)

    async def remember(
        self, key: str | Enum, ttl: Ttl | None, callback: ValueFactory
    ) -> Any:  # noqa: ANN401
        """Return the cached value or compute and store it."""
        if ttl is None:
            return await self.remember_forever(key, callback)
        seconds = ttl_seconds(ttl)
        if seconds <= 0:
            return await resolve_value(callback)
        name = key_name(key)
        value, hit = await self._ops.remember.execute(name, seconds, callback, self._tags.names)
        logger.debug("cache_hit" if hit else "cache_missed", key=name)
        return value

    async def remember_forever(self, key: str | Enum, callback: ValueFactory) -> Any:  # noqa: ANN401
        """Return the cached value or compute and store it with no expiry."""
        name = key_name(key)
        value, hit = await self._ops.remember_forever.execute(name, callback, self._tags.names)
        logger.debug("cache_hit" if hit else "cache_missed", key=name)
        return value

    async def flush(self) -> bool:
        """Delete everything reachable from the tags."""
        logger.debug("cache_flushing", tags=self._tags.names)
        await self._tags.flush()
        return True

    def items(self) -> AsyncGenerator[tuple[str, Any], None]:
        """Every live ``(key, value)`` pair under any of the tags."""
        return self._ops.get_tag_items.execute(self._tags.names)
