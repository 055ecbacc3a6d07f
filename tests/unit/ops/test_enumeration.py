"""Tests for GetTaggedKeys and GetTagItems."""

from __future__ import annotations

import pickle

import pytest

from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_ops.any_tag import GetTagItems, GetTaggedKeys
from tests.mocks.mock_context import TrackingContext
from tests.mocks.mock_redis import FakeRedis


async def _tag(redis: FakeRedis, tag: str, *keys: str) -> None:
    await redis.hset(f"test:_any:tag:{tag}:entries", mapping=dict.fromkeys(keys, "1"))


@pytest.mark.unit
class TestGetTaggedKeys:
    """Adaptive HKEYS / HSCAN enumeration."""

    @pytest.mark.asyncio
    async def test_small_tag_uses_hkeys(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _tag(fake_redis, "t", "a", "b", "c")
        fake_redis.reset_commands()

        found = [k async for k in GetTaggedKeys(any_context, threshold=3).execute("t")]

        assert sorted(found) == ["a", "b", "c"]
        assert fake_redis.command_names() == ["HLEN", "HKEYS"]

    @pytest.mark.asyncio
    async def test_large_tag_scans_in_batches(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _tag(fake_redis, "t", "a", "b", "c", "d", "e")
        fake_redis.reset_commands()

        found = [
            k async for k in GetTaggedKeys(any_context, threshold=3, scan_count=2).execute("t")
        ]

        assert found == ["a", "b", "c", "d", "e"]
        assert fake_redis.command_names() == ["HLEN", "HSCAN", "HSCAN", "HSCAN"]

    @pytest.mark.asyncio
    async def test_missing_tag_is_empty(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        assert [k async for k in GetTaggedKeys(any_context).execute("nope")] == []
        assert fake_redis.command_names() == ["HLEN"]

    @pytest.mark.asyncio
    async def test_connection_released_between_batches(self, fake_redis: FakeRedis) -> None:
        await _tag(fake_redis, "t", "a", "b", "c", "d", "e")
        context = TrackingContext(fake_redis, prefix="test:", mode=TopologyMode.CLUSTER)

        held = [
            context.active
            async for _ in GetTaggedKeys(context, threshold=1, scan_count=2).execute("t")
        ]

        assert held == [0] * 5
        assert context.checkouts == 4

    @pytest.mark.asyncio
    async def test_each_call_rescans(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _tag(fake_redis, "t", "a")
        op = GetTaggedKeys(any_context)
        assert [k async for k in op.execute("t")] == ["a"]
        await _tag(fake_redis, "t", "b")
        assert sorted([k async for k in op.execute("t")]) == ["a", "b"]


@pytest.mark.unit
class TestGetTagItems:
    """Cross-tag value fetch."""

    @pytest.mark.asyncio
    async def test_union_is_deduplicated(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _tag(fake_redis, "t1", "a", "b")
        await _tag(fake_redis, "t2", "b", "c")
        for key in ("a", "b", "c"):
            await fake_redis.set(f"test:{key}", pickle.dumps(key.upper()))

        items = [item async for item in GetTagItems(any_context, batch_size=10).execute(["t1", "t2"])]

        assert sorted(items) == [("a", "A"), ("b", "B"), ("c", "C")]

    @pytest.mark.asyncio
    async def test_missing_values_skipped(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _tag(fake_redis, "t", "live", "gone")
        await fake_redis.set("test:live", b"1")

        items = [item async for item in GetTagItems(any_context).execute(["t"])]
        assert items == [("live", 1)]

    @pytest.mark.asyncio
    async def test_batches_and_topology_command(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _tag(fake_redis, "t", "a", "b", "c")
        for key in ("a", "b", "c"):
            await fake_redis.set(f"test:{key}", b"0")
        fake_redis.reset_commands()

        items = [item async for item in GetTagItems(any_context, batch_size=2).execute(["t"])]

        assert len(items) == 3
        if any_context.mode.is_cluster:
            assert not fake_redis.names("MGET")
            assert len(fake_redis.names("GET")) == 3
            assert "MULTI" not in fake_redis.command_names()
        else:
            assert [len(args) for args in fake_redis.names("MGET")] == [2, 1]

    @pytest.mark.asyncio
    async def test_cluster_reads_without_cluster_only_commands(
        self, context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        """Forced cluster mode reads through a plain client's pipeline."""
        await _tag(fake_redis, "t", "a", "b")
        await fake_redis.set("test:a", pickle.dumps("A"))

        items = [item async for item in GetTagItems(context).execute(["t"])]

        assert items == [("a", "A")]
