"""
Order commission tasks.

Consumes OrderCompleted events and distributes commissions for the order.
"""

import dramatiq
from loguru import logger

from affiliate.config.operational_constants import (
    DRAMATIQ_TIME_LIMIT_SHORT,
    DRAMATIQ_TIME_LIMIT_STANDARD,
)
from affiliate.services.commission.engine import CommissionEngine
from affiliate.services.commission.types import CalculationResult
from affiliate.utils.distributed_lock import get_distributed_lock
from jobs.async_runner import create_local_session, run_async
from jobs.utils.task_helpers import open_redis_client, should_retry


def _result_to_dict(result: CalculationResult) -> dict:
    return {
        "order_id": result.order_id,
        "success": result.success,
        "outcome": result.outcome.value,
        "total_records": result.total_records,
        "total_amount": str(result.total_amount),
        "errors": result.errors,
    }


@dramatiq.actor(max_retries=5, time_limit=DRAMATIQ_TIME_LIMIT_SHORT)
def process_order_completed(
    order_id: int, processed_by: str = "order_completed"
) -> dict | None:
    """
    Calculate commissions for a completed order.

    Lock conflicts (another worker is on the same order) are retried with
    backoff; missing or not-completed orders are dropped.

    Args:
        order_id: Completed order ID
        processed_by: Identifier written to the calculation log

    Returns:
        Calculation result as dict, None if the event was rejected
    """
    logger.info(f"Processing completed order {order_id}...")

    try:
        result = run_async(_calculate_async([order_id], processed_by))[0]
    except Exception as e:
        if should_retry(e):
            logger.warning(f"Commission calculation for order {order_id} will be retried: {e}")
            raise
        logger.error(f"Commission calculation rejected for order {order_id}: {e}")
        return None

    logger.info(f"Order {order_id} commissions: {result}")
    return result


@dramatiq.actor(max_retries=2, time_limit=DRAMATIQ_TIME_LIMIT_STANDARD)
def recalculate_order_commissions(
    order_ids: list[int], processed_by: str = "recalculation"
) -> list[dict]:
    """
    Recalculate commissions for a batch of orders.

    Failing orders are reported in the result and do not stop the batch.

    Args:
        order_ids: Order IDs
        processed_by: Identifier written to the calculation log

    Returns:
        One result dict per order
    """
    logger.info(f"Recalculating commissions for {len(order_ids)} orders...")

    results = run_async(_calculate_async(order_ids, processed_by, batch=True))

    failed = [r["order_id"] for r in results if not r["success"]]
    if failed:
        logger.warning(f"Commission recalculation failed for orders {failed}")
    return results


async def _calculate_async(
    order_ids: list[int], processed_by: str, batch: bool = False
) -> list[dict]:
    """Async implementation of commission calculation tasks."""
    redis_client = await open_redis_client()
    try:
        async with create_local_session() as session:
            engine = CommissionEngine(
                session,
                lock=get_distributed_lock(session=session, redis_client=redis_client),
            )
            if batch:
                results = await engine.calculate_for_orders(
                    order_ids, processed_by=processed_by
                )
            else:
                results = [
                    await engine.calculate_for_order(
                        order_id, processed_by=processed_by
                    )
                    for order_id in order_ids
                ]
            return [_result_to_dict(result) for result in results]
    finally:
        if redis_client:
            await redis_client.aclose()
