"""Tests for Flush."""

from __future__ import annotations

import pytest

from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_ops.any_tag import Flush, GetTaggedKeys, Put
from tests.mocks.mock_redis import FakeRedis


async def _seed(redis: FakeRedis, key: str, tags: list[str]) -> None:
    seed = RedisStoreContext(redis, prefix="test:", mode=TopologyMode.CLUSTER)
    await Put(seed).execute(key, "v", 60, tags)


@pytest.mark.unit
class TestFlush:
    """Tag-scoped bulk delete."""

    @pytest.mark.asyncio
    async def test_flush_removes_entries_and_tag(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _seed(fake_redis, "a", ["users"])
        await _seed(fake_redis, "b", ["users", "posts"])
        await _seed(fake_redis, "c", ["posts"])

        assert await Flush(any_context).execute(["users"]) is True

        assert "test:a" not in fake_redis.strings
        assert "test:b" not in fake_redis.strings
        assert "test:c" in fake_redis.strings
        assert "test:a:_any:tags" not in fake_redis.sets
        assert "test:b:_any:tags" not in fake_redis.sets
        assert "test:_any:tag:users:entries" not in fake_redis.hashes
        assert await fake_redis.zscore("test:_any:tag:registry", "users") is None
        assert await fake_redis.zscore("test:_any:tag:registry", "posts") is not None

    @pytest.mark.asyncio
    async def test_other_tags_keep_orphan_fields(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        """Flush does not chase the other tags of a flushed key."""
        await _seed(fake_redis, "b", ["users", "posts"])
        await Flush(any_context).execute(["users"])
        assert b"b" in fake_redis.hashes["test:_any:tag:posts:entries"]

    @pytest.mark.asyncio
    async def test_flush_is_idempotent(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _seed(fake_redis, "a", ["users"])
        flush = Flush(any_context)
        await flush.execute(["users"])
        snapshot = (dict(fake_redis.strings), dict(fake_redis.hashes), dict(fake_redis.zsets))

        assert await flush.execute(["users"]) is True
        assert (fake_redis.strings, fake_redis.hashes, fake_redis.zsets) == snapshot

    @pytest.mark.asyncio
    async def test_chunks_deletes(self, any_context: RedisStoreContext, fake_redis: FakeRedis) -> None:
        for key in ("a", "b", "c", "d", "e"):
            await _seed(fake_redis, key, ["t"])
        fake_redis.reset_commands()

        tagged_keys = GetTaggedKeys(any_context, threshold=2, scan_count=2)
        await Flush(any_context, tagged_keys=tagged_keys, chunk_size=2).execute(["t"])

        assert [len(args) for args in fake_redis.names("UNLINK")] == [2, 2, 1]
        assert all(name.endswith(":_any:tags") for args in fake_redis.names("DEL")[:3] for name in args)
        assert fake_redis.strings == {}

    @pytest.mark.asyncio
    async def test_standalone_uses_pipeline_without_transaction(
        self, standalone_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _seed(fake_redis, "a", ["users"])
        fake_redis.reset_commands()
        await Flush(standalone_context).execute(["users"])
        assert "MULTI" not in fake_redis.command_names()
        assert "EVALSHA" not in fake_redis.command_names()

    @pytest.mark.asyncio
    async def test_unknown_tag_is_noop(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        assert await Flush(any_context).execute(["missing"]) is True
        assert "UNLINK" not in fake_redis.command_names()

    @pytest.mark.asyncio
    async def test_key_under_several_tags_deleted_once(
        self, any_context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        """One buffer spans all tags, so a shared key is unlinked once."""
        await _seed(fake_redis, "shared", ["users", "posts"])
        await _seed(fake_redis, "u", ["users"])
        await _seed(fake_redis, "p", ["posts"])
        fake_redis.reset_commands()

        await Flush(any_context).execute(["users", "posts"])

        unlinked = [name for args in fake_redis.names("UNLINK") for name in args]
        assert sorted(unlinked) == ["test:p", "test:shared", "test:u"]
        assert fake_redis.strings == {}
        assert fake_redis.zsets == {}

    @pytest.mark.asyncio
    async def test_tags_dropped_after_last_chunk(
        self, context: RedisStoreContext, fake_redis: FakeRedis
    ) -> None:
        await _seed(fake_redis, "a", ["users"])
        await _seed(fake_redis, "b", ["posts"])
        fake_redis.reset_commands()

        await Flush(context).execute(["users", "posts"])

        names = fake_redis.command_names()
        assert names.index("ZREM") > max(i for i, name in enumerate(names) if name == "UNLINK")
        assert [args[1] for args in fake_redis.names("ZREM")] == ["users", "posts"]
