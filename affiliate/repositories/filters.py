"""
Commission filters.

CommissionFilter is an immutable set of optional criteria. The same filter
drives SQL queries (build_commission_conditions) and in-memory matching
(commission_matches), so both stay in sync.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from sqlalchemy import ColumnElement

from affiliate.models.commission import AffiliateCommission
from affiliate.models.enums import CommissionLevel, CommissionStatus


@dataclass(frozen=True)
class CommissionFilter:
    """Optional commission criteria; None means "any"."""

    order_id: int | None = None
    product_id: int | None = None
    beneficiary_id: int | None = None
    category_id: int | None = None
    level: CommissionLevel | None = None
    status: CommissionStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None

    def __post_init__(self) -> None:
        if self.level is not None and not isinstance(self.level, CommissionLevel):
            object.__setattr__(self, "level", CommissionLevel(self.level))
        if self.status is not None and not isinstance(self.status, CommissionStatus):
            object.__setattr__(self, "status", CommissionStatus(self.status))
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        ):
            raise ValueError("start_date must not be after end_date")

    def with_changes(self, **changes: Any) -> "CommissionFilter":
        """Return a copy with some criteria replaced."""
        return replace(self, **changes)


def build_commission_conditions(
    filters: CommissionFilter | None,
) -> list[ColumnElement[bool]]:
    """
    Translate a filter into SQLAlchemy WHERE clauses.

    Args:
        filters: Filter or None

    Returns:
        List of conditions to AND together (empty means no filtering)
    """
    if filters is None:
        return []

    model = AffiliateCommission
    conditions: list[ColumnElement[bool]] = []

    if filters.order_id is not None:
        conditions.append(model.order_id == filters.order_id)
    if filters.product_id is not None:
        conditions.append(model.product_id == filters.product_id)
    if filters.beneficiary_id is not None:
        conditions.append(model.beneficiary_id == filters.beneficiary_id)
    if filters.category_id is not None:
        conditions.append(model.category_id == filters.category_id)
    if filters.level is not None:
        conditions.append(model.level == filters.level)
    if filters.status is not None:
        conditions.append(model.status == filters.status)
    if filters.start_date is not None:
        conditions.append(model.calculated_at >= filters.start_date)
    if filters.end_date is not None:
        conditions.append(model.calculated_at <= filters.end_date)

    return conditions


def commission_matches(
    commission: AffiliateCommission, filters: CommissionFilter | None
) -> bool:
    """
    Evaluate a filter against a loaded commission.

    Args:
        commission: Commission record
        filters: Filter or None

    Returns:
        True if every set criterion matches
    """
    if filters is None:
        return True

    checks = (
        (filters.order_id, commission.order_id),
        (filters.product_id, commission.product_id),
        (filters.beneficiary_id, commission.beneficiary_id),
        (filters.category_id, commission.category_id),
        (filters.level, commission.level),
        (filters.status, commission.status),
    )
    for expected, actual in checks:
        if expected is not None and expected != actual:
            return False

    if filters.start_date is not None and commission.calculated_at < filters.start_date:
        return False
    if filters.end_date is not None and commission.calculated_at > filters.end_date:
        return False

    return True
