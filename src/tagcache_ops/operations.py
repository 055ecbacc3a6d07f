"""Lazily built, cached any-tag operations for one store context."""

from __future__ import annotations

from functools import cached_property

from tagcache_core.config.settings import Settings
from tagcache_core.interfaces.serializer import Serializer
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.serialization import Serialization
from tagcache_ops.any_tag import (
    Add,
    Decrement,
    Flush,
    Forever,
    GetTagItems,
    GetTaggedKeys,
    Increment,
    Prune,
    Put,
    PutMany,
    Remember,
    RememberForever,
)


class AnyTagOperations:
    """One instance of each operation, created on first use.

    Every operation shares the same context, serializer and topology mode.
    """

    def __init__(
        self,
        context: RedisStoreContext,
        settings: Settings | None = None,
        serialization: Serializer | None = None,
        mode: TopologyMode | None = None,
    ) -> None:
        """Initialize; batch sizes come from ``settings``."""
        self._context = context
        self._settings = settings or Settings()
        self._serialization = serialization or Serialization()
        self._mode = mode if mode is not None else context.mode

    @property
    def mode(self) -> TopologyMode:
        """Topology every operation runs in."""
        return self._mode

    @property
    def serialization(self) -> Serializer:
        """Serializer shared by every operation."""
        return self._serialization

    @cached_property
    def put(self) -> Put:
        return Put(self._context, self._serialization, self._mode)

    @cached_property
    def put_many(self) -> PutMany:
        return PutMany(
            self._context,
            self._serialization,
            self._mode,
            chunk_size=self._settings.put_many_chunk_size,
        )

    @cached_property
    def add(self) -> Add:
        return Add(self._context, self._serialization, self._mode)

    @cached_property
    def forever(self) -> Forever:
        return Forever(self._context, self._serialization, self._mode)

    @cached_property
    def increment(self) -> Increment:
        return Increment(self._context, self._serialization, self._mode)

    @cached_property
    def decrement(self) -> Decrement:
        return Decrement(self._context, self._serialization, self._mode)

    @cached_property
    def remember(self) -> Remember:
        return Remember(self._context, self._serialization, self._mode)

    @cached_property
    def remember_forever(self) -> RememberForever:
        return RememberForever(self._context, self._serialization, self._mode)

    @cached_property
    def get_tagged_keys(self) -> GetTaggedKeys:
        return GetTaggedKeys(
            self._context,
            self._serialization,
            self._mode,
            threshold=self._settings.tagged_keys_threshold,
            scan_count=self._settings.tagged_keys_scan_count,
        )

    @cached_property
    def get_tag_items(self) -> GetTagItems:
        return GetTagItems(
            self._context,
            self._serialization,
            self._mode,
            tagged_keys=self.get_tagged_keys,
            batch_size=self._settings.tag_items_batch_size,
        )

    @cached_property
    def flush(self) -> Flush:
        return Flush(
            self._context,
            self._serialization,
            self._mode,
            tagged_keys=self.get_tagged_keys,
            chunk_size=self._settings.flush_chunk_size,
        )

    @cached_property
    def prune(self) -> Prune:
        return Prune(
            self._context,
            self._serialization,
            self._mode,
            pause_ms=self._settings.prune_pause_ms,
        )
