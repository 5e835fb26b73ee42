"""
Commission calculation log model.

Append-only audit trail: one row per calculation attempt, including
failed attempts whose commission writes were rolled back.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from affiliate.models.base import Base
from affiliate.models.enums import CalculationOutcome
from affiliate.models.types import MoneyType, enum_column_type


class AffiliateCommissionLog(Base):
    """Commission calculation attempt."""

    __tablename__ = "affiliate_commission_logs"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # No FK: failed attempts for unknown orders are logged too
    order_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    total_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    record_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    outcome: Mapped[CalculationOutcome] = mapped_column(
        enum_column_type(CalculationOutcome), nullable=False, index=True
    )
    processed_by: Mapped[str] = mapped_column(
        String(255), nullable=False, default=""
    )
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AffiliateCommissionLog(order_id={self.order_id}, "
            f"outcome={self.outcome}, records={self.record_count})>"
        )
