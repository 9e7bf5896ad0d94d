"""Redis connection pool and best-effort pub/sub notifications."""

import json
import logging
from typing import Any

import redis.asyncio as redis

logger = logging.getLogger(__name__)

_pool: redis.Redis | None = None


async def init_redis(url: str) -> None:
    """Initialize the Redis connection pool."""
    global _pool  # noqa: PLW0603
    _pool = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
    )


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _pool  # noqa: PLW0603
    if _pool:
        await _pool.aclose()
        _pool = None


def get_redis() -> redis.Redis:
    """Get the Redis client (FastAPI dependency)."""
    if _pool is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _pool


async def publish(channel: str, payload: dict[str, Any]) -> None:
    """Publish a JSON payload on a pub/sub channel.

    Called only after the owning transaction has committed. Delivery is
    best-effort: an unavailable Redis never fails the ledger operation.
    """
    if _pool is None:
        return
    try:
        await _pool.publish(channel, json.dumps(payload))
    except redis.RedisError:
        logger.warning("Failed to publish %s", channel, exc_info=True)
