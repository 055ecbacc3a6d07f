"""Integration fixtures backed by a real Redis 8 server.

The server defaults to ``redis://localhost:6379/1``; point
``TAGCACHE_TEST_REDIS_URL`` elsewhere to use another one. Every test in this
package is skipped when the server is unreachable or older than 8.0.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from tagcache_core.models.topology import TopologyMode
from tagcache_ops.store import RedisTagStore
from tests.mocks.mock_settings import make_settings

REDIS_URL = os.environ.get("TAGCACHE_TEST_REDIS_URL", "redis://localhost:6379/1")
MIN_MAJOR_VERSION = 8


async def _connect_or_skip() -> Redis:
    client = Redis.from_url(REDIS_URL, decode_responses=False, socket_connect_timeout=1.0)
    try:
        info = await client.info("server")
    except (RedisConnectionError, RedisTimeoutError, OSError):
        await client.aclose()
        pytest.skip(f"Redis not reachable at {REDIS_URL}")

    major = int(str(info.get("redis_version", "0")).split(".")[0])
    if major < MIN_MAJOR_VERSION:
        await client.aclose()
        pytest.skip("Redis 8.0+ required for HSETEX")
    return client


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[Any, None]:
    """Bytes client on the test database, emptied around each test."""
    client = await _connect_or_skip()
    await client.flushdb()
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()


@pytest_asyncio.fixture(
    params=[TopologyMode.STANDALONE, TopologyMode.CLUSTER],
    ids=["standalone", "cluster"],
)
async def store(request: pytest.FixtureRequest, redis_client: Any) -> RedisTagStore:  # noqa: ANN401
    """Store over the real server, once per topology.

    Cluster mode is forced on a single node so the sequential command path
    runs against the same data.
    """
    return RedisTagStore(redis_client, make_settings(redis_url=REDIS_URL), mode=request.param)
