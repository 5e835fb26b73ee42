"""Task utilities."""
from jobs.utils.task_helpers import open_redis_client, should_retry

__all__ = [
    "open_redis_client",
    "should_retry",
]
