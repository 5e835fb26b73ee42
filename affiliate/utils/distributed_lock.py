"""
Distributed lock.

Serializes work on a shared resource (one order, the closure table) across
workers. Backends, in order of preference:

- Redis lock, when a Redis client is supplied
- PostgreSQL advisory lock, held on a dedicated connection so it survives
  the caller's commits
- In-process asyncio.Lock (single process, tests)
"""

import asyncio
import hashlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from affiliate.config.operational_constants import (
    ADVISORY_LOCK_POLL_INTERVAL,
    BLOCKING_TIMEOUT_DEFAULT,
    LOCK_TIMEOUT_MEDIUM,
)


if TYPE_CHECKING:
    import redis.asyncio as redis


# Process-wide fallback locks, keyed by lock name. An entry lives while
# any holder or waiter still references it.
_local_locks: dict[str, asyncio.Lock] = {}
_local_users: dict[str, int] = {}


def advisory_key(key: str) -> int:
    """
    Map a lock name to a signed 64-bit advisory lock key.

    Args:
        key: Lock name

    Returns:
        Stable bigint derived from the name
    """
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class DistributedLock:
    """
    Distributed lock with Redis / PostgreSQL / local fallback.

    Example:
        lock = DistributedLock(redis_client=redis_client)
        async with lock.lock("commission:order:42", blocking=False) as acquired:
            if not acquired:
                return
            ...
    """

    def __init__(
        self,
        redis_client: "redis.Redis | None" = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        """
        Initialize lock.

        Args:
            redis_client: Optional async Redis client
            engine: Optional PostgreSQL engine for advisory locks
        """
        self.redis_client = redis_client
        self.engine = engine

    @property
    def backend(self) -> str:
        """Name of the backend in use."""
        if self.redis_client is not None:
            return "redis"
        if self.engine is not None:
            return "postgresql"
        return "local"

    @asynccontextmanager
    async def lock(
        self,
        key: str,
        timeout: int = LOCK_TIMEOUT_MEDIUM,
        blocking: bool = True,
        blocking_timeout: float = BLOCKING_TIMEOUT_DEFAULT,
    ) -> AsyncIterator[bool]:
        """
        Acquire lock for the duration of the context.

        Args:
            key: Lock name
            timeout: Lock expiry in seconds (Redis only)
            blocking: Wait for the lock if it is held
            blocking_timeout: Max seconds to wait when blocking

        Yields:
            True if the lock was acquired, False otherwise
        """
        if self.redis_client is not None:
            async with self._redis_lock(
                key, timeout, blocking, blocking_timeout
            ) as acquired:
                yield acquired
        elif self.engine is not None:
            async with self._advisory_lock(
                key, blocking, blocking_timeout
            ) as acquired:
                yield acquired
        else:
            async with self._local_lock(
                key, blocking, blocking_timeout
            ) as acquired:
                yield acquired

    @asynccontextmanager
    async def _redis_lock(
        self,
        key: str,
        timeout: int,
        blocking: bool,
        blocking_timeout: float,
    ) -> AsyncIterator[bool]:
        from redis.exceptions import LockError

        redis_lock = self.redis_client.lock(f"lock:{key}", timeout=timeout)
        acquired = await redis_lock.acquire(
            blocking=blocking,
            blocking_timeout=blocking_timeout if blocking else None,
        )
        if not acquired:
            logger.debug("Redis lock busy", extra={"key": key})
        try:
            yield bool(acquired)
        finally:
            if acquired:
                try:
                    await redis_lock.release()
                except LockError as e:
                    # Expired while held; the next holder already owns it
                    logger.warning(
                        f"Redis lock {key} expired before release: {e}"
                    )

    @asynccontextmanager
    async def _advisory_lock(
        self,
        key: str,
        blocking: bool,
        blocking_timeout: float,
    ) -> AsyncIterator[bool]:
        lock_id = advisory_key(key)
        async with self.engine.connect() as conn:
            acquired = await self._try_advisory(conn, lock_id)
            if not acquired and blocking:
                deadline = asyncio.get_running_loop().time() + blocking_timeout
                while not acquired and asyncio.get_running_loop().time() < deadline:
                    await asyncio.sleep(ADVISORY_LOCK_POLL_INTERVAL)
                    acquired = await self._try_advisory(conn, lock_id)
            if not acquired:
                logger.debug("Advisory lock busy", extra={"key": key})
            try:
                yield acquired
            finally:
                if acquired:
                    await conn.execute(
                        text("SELECT pg_advisory_unlock(:key)"), {"key": lock_id}
                    )
                    await conn.commit()

    @staticmethod
    async def _try_advisory(conn, lock_id: int) -> bool:
        result = await conn.execute(
            text("SELECT pg_try_advisory_lock(:key)"), {"key": lock_id}
        )
        acquired = bool(result.scalar())
        await conn.commit()
        return acquired

    @asynccontextmanager
    async def _local_lock(
        self,
        key: str,
        blocking: bool,
        blocking_timeout: float,
    ) -> AsyncIterator[bool]:
        local = _local_locks.setdefault(key, asyncio.Lock())
        _local_users[key] = _local_users.get(key, 0) + 1
        acquired = False
        try:
            if not blocking:
                acquired = not local.locked()
                if acquired:
                    await local.acquire()
            else:
                try:
                    await asyncio.wait_for(local.acquire(), blocking_timeout)
                    acquired = True
                except TimeoutError:
                    acquired = False
            yield acquired
        finally:
            if acquired:
                local.release()
            _local_users[key] -= 1
            if not _local_users[key]:
                del _local_users[key]
                del _local_locks[key]


def get_distributed_lock(
    session: AsyncSession | None = None,
    redis_client: "redis.Redis | None" = None,
) -> DistributedLock:
    """
    Build a lock for the best available backend.

    Args:
        session: Session whose engine is used for advisory locks
        redis_client: Optional Redis client (preferred)

    Returns:
        DistributedLock instance
    """
    if redis_client is not None:
        return DistributedLock(redis_client=redis_client)

    bind = getattr(session, "bind", None) if session is not None else None
    if isinstance(bind, AsyncEngine) and bind.dialect.name == "postgresql":
        return DistributedLock(engine=bind)

    logger.warning("No Redis or PostgreSQL bind available, using local lock only")
    return DistributedLock()
