"""
Enumerations shared by models and services.
"""

from enum import Enum


class CommissionLevel(str, Enum):
    """
    Position of the beneficiary relative to the buyer.

    F2 is the buyer, F1 the direct referrer, F0 the referrer's referrer.
    """

    F0 = "F0"
    F1 = "F1"
    F2 = "F2"


class CommissionStatus(str, Enum):
    """Commission payment status."""

    CALCULATED = "calculated"
    PAID = "paid"


class CalculationOutcome(str, Enum):
    """Outcome of one commission calculation attempt."""

    SUCCESS = "success"
    FAILED = "failed"
    PARTIAL = "partial"


class OrderStatus(str, Enum):
    """Order lifecycle status (owned by the e-commerce subsystem)."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CategoryGroup(str, Enum):
    """Product category group driving the buyer commission rate."""

    A = "a"
    B = "b"
    C = "c"
