"""Shared pytest fixtures for unit tests."""

from __future__ import annotations

import pytest

from tagcache_core.config.settings import Settings
from tagcache_core.models.topology import TopologyMode
from tagcache_infra.redis.context import RedisStoreContext
from tagcache_ops.store import RedisTagStore
from tests.mocks.mock_redis import FakeRedis
from tests.mocks.mock_settings import make_settings


@pytest.fixture
def settings() -> Settings:
    """Real Settings with tiny batch sizes."""
    return make_settings()


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Empty recording Redis."""
    return FakeRedis()


@pytest.fixture
def context(fake_redis: FakeRedis) -> RedisStoreContext:
    """Cluster-mode context over the fake; cluster mode issues only plain commands."""
    return RedisStoreContext(fake_redis, prefix="test:", mode=TopologyMode.CLUSTER)


@pytest.fixture
def standalone_context(fake_redis: FakeRedis) -> RedisStoreContext:
    """Standalone context over the fake; writes go through scripts."""
    return RedisStoreContext(fake_redis, prefix="test:", mode=TopologyMode.STANDALONE)


@pytest.fixture(params=[TopologyMode.STANDALONE, TopologyMode.CLUSTER], ids=["standalone", "cluster"])
def any_context(request: pytest.FixtureRequest, fake_redis: FakeRedis) -> RedisStoreContext:
    """Context in each topology, for operations that never send scripts."""
    return RedisStoreContext(fake_redis, prefix="test:", mode=request.param)


@pytest.fixture
def store(fake_redis: FakeRedis, settings: Settings) -> RedisTagStore:
    """Cluster-mode store over the fake."""
    return RedisTagStore(fake_redis, settings, mode=TopologyMode.CLUSTER)
