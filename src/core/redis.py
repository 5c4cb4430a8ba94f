"""Shared Redis client for the API process.

Only the bank directory cache reads it; the ledger never does. Celery
talks to the broker on its own connection.
"""

import redis.asyncio as redis

from src.core.config import get_settings

_client: redis.Redis | None = None


async def init_redis() -> None:
    global _client
    _client = redis.from_url(get_settings().redis_url, decode_responses=True)


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Client opened by the app lifespan; RuntimeError outside of it."""
    if _client is None:
        raise RuntimeError("Redis client is not open; init_redis() runs in the app lifespan")
    return _client
