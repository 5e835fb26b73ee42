"""
Commission services package.

- engine: Commission distribution per completed order
- ledger: Record management, payouts and reporting
- types: Result and report value types
"""

from affiliate.services.commission.engine import CommissionEngine
from affiliate.services.commission.ledger import CommissionLedger
from affiliate.services.commission.types import (
    BeneficiaryCommissions,
    CalculationResult,
    CommissionCreate,
    CommissionPage,
    CommissionStatistics,
    CommissionSummary,
    LineOutcome,
    OrderCommissionView,
    OrderProductView,
    PageRequest,
)


__all__ = [
    "BeneficiaryCommissions",
    "CalculationResult",
    "CommissionCreate",
    "CommissionEngine",
    "CommissionLedger",
    "CommissionPage",
    "CommissionStatistics",
    "CommissionSummary",
    "LineOutcome",
    "OrderCommissionView",
    "OrderProductView",
    "PageRequest",
]
