"""
Exception handling utilities.

Defines categorized exception types for the referral and commission core.
"""

from sqlalchemy.exc import OperationalError


class AffiliateError(Exception):
    """Base class for affiliate core errors."""

    pass


# Lookup failures

class NotFoundError(AffiliateError):
    """Raised when a required entity does not exist."""

    pass


class OrderNotFoundError(NotFoundError):
    """Raised when an order does not exist."""

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__(f"Order with ID {order_id} not found")


class CategoryNotFoundError(NotFoundError):
    """Raised when a category group has no configured rate."""

    def __init__(self, group: object) -> None:
        self.group = group
        super().__init__(f"No commission rate for category group {group!r}")


class CommissionNotFoundError(NotFoundError):
    """Raised when a commission record does not exist."""

    def __init__(self, commission_id: int) -> None:
        self.commission_id = commission_id
        super().__init__(f"Affiliate commission with ID {commission_id} not found")


# State failures

class InvalidStateError(AffiliateError):
    """Raised when an entity is not in the state an operation requires."""

    pass


class CommissionAlreadyPaidError(InvalidStateError):
    """Raised when marking an already paid commission as paid."""

    def __init__(self, commission_id: int) -> None:
        self.commission_id = commission_id
        super().__init__(f"Affiliate commission {commission_id} is already paid")


class ConcurrencyConflictError(AffiliateError):
    """Raised when another worker holds the lock for the same resource."""

    pass


class DataIntegrityError(AffiliateError):
    """Raised on cycles, missing self-edges or orphaned closure rows."""

    pass


class ReferrerNotRegisteredError(DataIntegrityError):
    """
    Raised when the referrer has no self-edge yet.

    Registration events can arrive before the referrer's own event, so
    this one is retried instead of dropped.
    """

    def __init__(self, referrer_id: int) -> None:
        self.referrer_id = referrer_id
        super().__init__(
            f"Referrer {referrer_id} has no self-edge (not registered)"
        )


class CommissionLineError(AffiliateError):
    """Raised when a single order line cannot be turned into commissions."""

    def __init__(self, line_id: int, reason: str) -> None:
        self.line_id = line_id
        self.reason = reason
        super().__init__(f"Order line {line_id}: {reason}")


class NoValidLinesError(AffiliateError):
    """Raised when partial mode has skipped every line of an order."""

    def __init__(self, order_id: int, errors: list[str]) -> None:
        self.order_id = order_id
        self.errors = errors
        super().__init__(
            f"Every line of order {order_id} failed: {'; '.join(errors)}"
        )


# Exception categories based on handling strategy

# Must log but can continue - the caller retries later
MUST_LOG = (
    OperationalError,  # Database connectivity errors
    ConcurrencyConflictError,  # Another worker is processing the same order
    ReferrerNotRegisteredError,  # Referrer's own registration not processed yet
)

# Must raise - validation and integrity problems
MUST_RAISE = (
    ValueError,
    NotFoundError,
    InvalidStateError,
    DataIntegrityError,
)


def must_log(exc: Exception) -> bool:
    """
    Check if exception must be logged.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be logged
    """
    return isinstance(exc, MUST_LOG)


def must_raise(exc: Exception) -> bool:
    """
    Check if exception must be raised.

    Args:
        exc: Exception to check

    Returns:
        True if exception must be raised
    """
    return isinstance(exc, MUST_RAISE)
