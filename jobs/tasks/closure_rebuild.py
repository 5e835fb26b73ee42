"""
Referral closure rebuild task.

Recomputes the whole closure relation from users' referrer pointers.
Runs on demand (backfill, after bulk imports, drift repair).
"""

import dramatiq
from loguru import logger

from affiliate.config.operational_constants import (
    DRAMATIQ_TIME_LIMIT_LONG,
    LOCK_TIMEOUT_EXTENDED,
)
from affiliate.services.referral.closure_rebuild import ClosureRebuildJob
from affiliate.utils.distributed_lock import get_distributed_lock
from jobs.async_runner import create_local_session, run_async
from jobs.utils.task_helpers import open_redis_client


REBUILD_LOCK_KEY = "referral_closure_rebuild"


@dramatiq.actor(max_retries=0, time_limit=DRAMATIQ_TIME_LIMIT_LONG)
def rebuild_referral_closure() -> dict | None:
    """
    Rebuild the referral closure relation.

    Only one rebuild runs at a time; a second request while one is running
    is skipped.

    Returns:
        {
            "nodes": int,       # Users processed
            "edges": int,       # Closure rows written
            "duration": float,  # Seconds
        }
        or None if skipped
    """
    logger.info("Starting referral closure rebuild...")

    try:
        result = run_async(_rebuild_async())
    except Exception as e:
        logger.exception(f"Referral closure rebuild failed: {e}")
        raise

    if result is not None:
        logger.info(f"Referral closure rebuild complete: {result}")
    return result


async def _rebuild_async() -> dict | None:
    """Async implementation of closure rebuild task."""
    redis_client = await open_redis_client()

    try:
        async with create_local_session() as session:
            lock = get_distributed_lock(session=session, redis_client=redis_client)
            async with lock.lock(
                REBUILD_LOCK_KEY, timeout=LOCK_TIMEOUT_EXTENDED, blocking=False
            ) as acquired:
                if not acquired:
                    logger.warning(
                        "Referral closure rebuild already running, skipping"
                    )
                    return None

                report = await ClosureRebuildJob(session).run()

            return {
                "nodes": report.nodes,
                "edges": report.edges,
                "duration": report.duration,
            }
    finally:
        if redis_client:
            await redis_client.aclose()
