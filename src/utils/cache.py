"""Read-through cache for values fetched from external services."""

import json
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import redis.asyncio as redis

logger = logging.getLogger(__name__)


class ReadThroughCache(Protocol):
    """Return the cached value for a key, loading and storing it on a miss."""

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: int,
    ) -> Any: ...

    async def invalidate(self, key: str) -> None: ...


class RedisReadThroughCache:
    """ReadThroughCache over Redis, values stored as JSON.

    Loader results must be JSON serializable. A Redis outage degrades to
    calling the loader directly, and a failed invalidation leaves the entry
    to its TTL.
    """

    def __init__(self, client: redis.Redis, prefix: str = "settlement:"):
        self.client = client
        self.prefix = prefix

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        ttl: int,
    ) -> Any:
        full_key = f"{self.prefix}{key}"

        try:
            cached = await self.client.get(full_key)
        except redis.RedisError as e:
            logger.warning(f"Cache read failed for {full_key}: {e}")
            cached = None

        if cached is not None:
            return json.loads(cached)

        value = await loader()

        try:
            await self.client.set(full_key, json.dumps(value), ex=ttl)
        except redis.RedisError as e:
            logger.warning(f"Cache write failed for {full_key}: {e}")

        return value

    async def invalidate(self, key: str) -> None:
        full_key = f"{self.prefix}{key}"
        try:
            await self.client.delete(full_key)
        except redis.RedisError as e:
            # Entry expires on its TTL
            logger.warning(f"Cache invalidate failed for {full_key}: {e}")
