"""Tests for client construction and the store context."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.asyncio import Redis
from redis.asyncio.cluster import RedisCluster

from tagcache_core.interfaces import ConnectionContext
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.client import create_redis_client, resolve_topology
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_infra.redis.scripts import ScriptRegistry
from tests.mocks.mock_settings import make_settings


@pytest.mark.unit
class TestCreateRedisClient:
    """Client type follows settings.redis_cluster."""

    def test_standalone_client(self) -> None:
        with patch("tagcache_infra.redis.client.Redis.from_url") as from_url:
            create_redis_client(make_settings(redis_cluster=False))
        from_url.assert_called_once_with("redis://localhost:6379/1", decode_responses=False)

    def test_cluster_client(self) -> None:
        with patch("tagcache_infra.redis.client.RedisCluster.from_url") as from_url:
            create_redis_client(make_settings(redis_cluster=True))
        from_url.assert_called_once_with("redis://localhost:6379/1", decode_responses=False)


@pytest.mark.unit
class TestResolveTopology:
    """Topology is derived from the client type."""

    def test_standalone(self) -> None:
        assert resolve_topology(MagicMock(spec=Redis)) is TopologyMode.STANDALONE

    def test_cluster(self) -> None:
        assert resolve_topology(MagicMock(spec=RedisCluster)) is TopologyMode.CLUSTER


@pytest.mark.unit
class TestRedisStoreContext:
    """Context wiring."""

    def test_resolves_mode_from_client(self) -> None:
        context = RedisStoreContext(MagicMock(spec=RedisCluster), prefix="p:")
        assert context.mode is TopologyMode.CLUSTER
        assert context.prefix == "p:"
        assert context.keys.entry("k") == "p:k"

    def test_explicit_mode_wins(self) -> None:
        context = RedisStoreContext(MagicMock(spec=RedisCluster), mode=TopologyMode.STANDALONE)
        assert context.mode is TopologyMode.STANDALONE

    def test_custom_scripts(self) -> None:
        scripts = ScriptRegistry()
        assert RedisStoreContext(MagicMock(), scripts=scripts).scripts is scripts

    def test_satisfies_protocol(self) -> None:
        assert isinstance(RedisStoreContext(MagicMock()), ConnectionContext)

    @pytest.mark.asyncio
    async def test_connection_yields_client(self) -> None:
        client = MagicMock()
        context = RedisStoreContext(client)
        async with context.connection() as conn:
            assert conn is client

    @pytest.mark.asyncio
    async def test_aclose(self) -> None:
        client = MagicMock()
        client.aclose = AsyncMock()
        await RedisStoreContext(client).aclose()
        client.aclose.assert_awaited_once()
