"""
Referral registration task.

Consumes UserRegistered events and adds the account to the referral
closure relation.
"""

import dramatiq
from loguru import logger

from affiliate.config.operational_constants import DRAMATIQ_TIME_LIMIT_SHORT
from affiliate.services.referral.registration import ReferralRegistrationService
from jobs.async_runner import create_local_session, run_async
from jobs.utils.task_helpers import should_retry


@dramatiq.actor(max_retries=5, time_limit=DRAMATIQ_TIME_LIMIT_SHORT)
def process_user_registered(node_id: int, parent_id: int | None = None) -> int | None:
    """
    Register a new user in the referral tree.

    An event whose referrer is not in the tree yet (its own event is still
    queued) is retried with backoff; other integrity errors are dropped.

    Args:
        node_id: New user ID
        parent_id: Direct referrer ID, None for accounts without referrer

    Returns:
        Number of closure edges of the user, None if the event was rejected
    """
    logger.info(f"Registering user {node_id} under referrer {parent_id}...")

    try:
        edges = run_async(_register_async(node_id, parent_id))
    except Exception as e:
        if should_retry(e):
            logger.warning(f"Registration of user {node_id} will be retried: {e}")
            raise
        logger.error(f"Registration of user {node_id} rejected: {e}")
        return None

    return edges


async def _register_async(node_id: int, parent_id: int | None) -> int:
    """Async implementation of registration task."""
    async with create_local_session() as session:
        service = ReferralRegistrationService(session)
        edges = await service.register(node_id, parent_id)
        return len(edges)
