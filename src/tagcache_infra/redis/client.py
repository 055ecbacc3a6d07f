"""Redis client construction and topology resolution."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from redis.asyncio import Redis
from redis.asyncio.cluster import RedisCluster

from tagcache_core.models.topology import TopologyMode

if TYPE_CHECKING:
    from tagcache_core.config.settings import Settings

logger = structlog.get_logger()


def create_redis_client(settings: Settings) -> Redis | RedisCluster:
    """Build an asyncio Redis or RedisCluster client from settings.

    Responses stay as bytes: stored values are binary pickles.
    """
    if settings.redis_cluster:
        client: Redis | RedisCluster = RedisCluster.from_url(
            settings.redis_url, decode_responses=False
        )
    else:
        client = Redis.from_url(settings.redis_url, decode_responses=False)
    logger.debug(
        "redis_client_created",
        url=settings.redis_url,
        cluster=settings.redis_cluster,
    )
    return client


def resolve_topology(client: Any) -> TopologyMode:  # noqa: ANN401
    """Decide once how operations must talk to this client."""
    if isinstance(client, RedisCluster):
        return TopologyMode.CLUSTER
    return TopologyMode.STANDALONE
