"""Store context that counts open connection blocks."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from tagcache_infra.redis.context import RedisStoreContext


class TrackingContext(RedisStoreContext):
    """RedisStoreContext that records how many ``connection()`` blocks are open."""

    def __init__(self, *args: Any, **kwargs: Any) -> None:  # noqa: ANN401
        super().__init__(*args, **kwargs)
        self.active = 0
        self.checkouts = 0

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[Any, None]:
        self.active += 1
        self.checkouts += 1
        try:
            yield self.client
        finally:
            self.active -= 1
