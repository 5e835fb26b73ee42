"""
Dramatiq broker for affiliate events.

OrderCompleted and UserRegistered events, and operator-triggered closure
rebuilds, are queued on Redis.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger

from affiliate.config.settings import settings
from affiliate.utils.logging_config import setup_logging
from affiliate.utils.redis_utils import get_redis_url_masked


setup_logging("affiliate-worker")

redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password or None,
    db=settings.redis_db,
)

redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
# Per-actor max_retries overrides this default; actors re-raise only
# errors worth retrying (lock conflicts, lost connections)
redis_broker.add_middleware(
    Retries(
        max_retries=5,
        min_backoff=1_000,
        max_backoff=60_000,
    )
)

dramatiq.set_broker(redis_broker)
broker = redis_broker

logger.info(f"Affiliate job broker ready on {get_redis_url_masked()}")
