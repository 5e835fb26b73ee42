"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from affiliate.models.base import Base
from affiliate.models.commission import AffiliateCommission
from affiliate.models.commission_log import AffiliateCommissionLog
from affiliate.models.enums import (
    CalculationOutcome,
    CategoryGroup,
    CommissionLevel,
    CommissionStatus,
    OrderStatus,
)
from affiliate.models.order import Order, OrderLine
from affiliate.models.referral_closure import ClosureEdge, ReferralClosure, UserNode
from affiliate.models.user import User

__all__ = [
    # Base
    "Base",
    # Enums
    "CalculationOutcome",
    "CategoryGroup",
    "CommissionLevel",
    "CommissionStatus",
    "OrderStatus",
    # Referral tree
    "User",
    "ReferralClosure",
    "ClosureEdge",
    "UserNode",
    # Orders (read-only inputs)
    "Order",
    "OrderLine",
    # Commissions
    "AffiliateCommission",
    "AffiliateCommissionLog",
]
