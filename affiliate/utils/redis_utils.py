"""Redis connection helpers for locks and the job broker."""

import redis.asyncio as redis

from affiliate.config.operational_constants import (
    REDIS_CONNECT_TIMEOUT,
    REDIS_SOCKET_TIMEOUT,
)
from affiliate.config.settings import settings


def get_redis_client() -> redis.Redis:
    """
    Build an async Redis client from settings.

    The client connects lazily; callers that need to know whether Redis
    is reachable ping it first.

    Returns:
        redis.Redis client with short connect and socket timeouts
    """
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        socket_connect_timeout=REDIS_CONNECT_TIMEOUT,
        socket_timeout=REDIS_SOCKET_TIMEOUT,
        decode_responses=True,
    )


def get_redis_url_masked() -> str:
    """Redis URL for log lines, password replaced by ****."""
    auth = ":****@" if settings.redis_password else ""
    return (
        f"redis://{auth}{settings.redis_host}:{settings.redis_port}"
        f"/{settings.redis_db}"
    )
