"""
Operational constants for the affiliate core.

Technical/operational constants used across the application.
Includes lock timeouts, blocking timeouts and pagination limits.
"""

# =============================================================================
# LOCK TIMEOUTS (seconds)
# =============================================================================
# Used by distributed_lock.py for Redis locks

# Short operations (single record transitions)
LOCK_TIMEOUT_SHORT = 30

# Medium operations (per-order commission calculation)
LOCK_TIMEOUT_MEDIUM = 60

# Long operations (batch processing)
LOCK_TIMEOUT_LONG = 300

# Very long operations (closure rebuild)
LOCK_TIMEOUT_EXTENDED = 600


# =============================================================================
# BLOCKING TIMEOUTS (seconds)
# =============================================================================
# How long to wait for lock acquisition

BLOCKING_TIMEOUT_SHORT = 3.0
BLOCKING_TIMEOUT_DEFAULT = 5.0
BLOCKING_TIMEOUT_LONG = 10.0

# Poll interval while waiting on a PostgreSQL advisory lock
ADVISORY_LOCK_POLL_INTERVAL = 0.1


# =============================================================================
# PAGINATION
# =============================================================================

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
DEFAULT_ORDERS_PER_LEVEL = 5
MAX_ORDERS_PER_LEVEL = 20


# =============================================================================
# DRAMATIQ TIME LIMITS (milliseconds)
# =============================================================================

DRAMATIQ_TIME_LIMIT_SHORT = 60_000  # Single event handlers
DRAMATIQ_TIME_LIMIT_STANDARD = 300_000  # Commission batches
DRAMATIQ_TIME_LIMIT_LONG = 1_800_000  # Closure rebuild


# =============================================================================
# REDIS (seconds)
# =============================================================================

# Workers fall back to advisory locks rather than hang on a dead Redis
REDIS_CONNECT_TIMEOUT = 2.0
REDIS_SOCKET_TIMEOUT = 5.0
