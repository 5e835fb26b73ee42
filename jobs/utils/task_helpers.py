"""Shared helpers for affiliate actors."""

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import RedisError

from affiliate.utils.exceptions import must_log, must_raise
from affiliate.utils.redis_utils import get_redis_client


async def open_redis_client() -> redis.Redis | None:
    """
    Create a Redis client for distributed locks.

    Returns:
        Connected client, or None when Redis is unreachable (the lock then
        falls back to PostgreSQL advisory locks)
    """
    client = get_redis_client()
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Failed to create Redis client for lock: {e}")
        await client.aclose()
        return None
    return client


def should_retry(exc: Exception) -> bool:
    """
    Decide whether a failed message goes back to the queue.

    Lock conflicts and connectivity errors are retried by the broker's
    Retries middleware; validation and integrity errors never succeed on
    retry.

    Args:
        exc: Exception raised by the task

    Returns:
        True if the message should be retried
    """
    if must_log(exc):
        return True
    return not must_raise(exc)
