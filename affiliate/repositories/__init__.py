"""
Repositories.

Data access layer over the async SQLAlchemy session.
"""

from affiliate.repositories.base import BaseRepository
from affiliate.repositories.commission_log_repository import (
    CommissionLogRepository,
)
from affiliate.repositories.commission_repository import (
    CommissionRepository,
    LevelStatusTotals,
    OrderCommissionTotal,
)
from affiliate.repositories.order_repository import OrderRepository
from affiliate.repositories.referral_closure_repository import (
    ReferralClosureRepository,
)
from affiliate.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "CommissionLogRepository",
    "CommissionRepository",
    "LevelStatusTotals",
    "OrderCommissionTotal",
    "OrderRepository",
    "ReferralClosureRepository",
    "UserRepository",
]
