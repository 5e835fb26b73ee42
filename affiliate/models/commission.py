"""
Affiliate commission model.

One row per (order line, beneficiary, level). Rows are produced by
CommissionEngine, replaced on recompute and moved calculated -> paid by
CommissionLedger.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from affiliate.models.base import Base
from affiliate.models.enums import CommissionLevel, CommissionStatus
from affiliate.models.types import MoneyType, RateType, enum_column_type


class AffiliateCommission(Base):
    """Commission earned by a beneficiary on one order line."""

    __tablename__ = "affiliate_commissions"
    __table_args__ = (
        UniqueConstraint(
            "order_id",
            "order_line_id",
            "beneficiary_id",
            "level",
            name="uq_commission_order_line_beneficiary_level",
        ),
        CheckConstraint(
            "rate >= 0 AND rate <= 1", name="check_commission_rate_fraction"
        ),
        CheckConstraint("amount >= 0", name="check_commission_amount_non_negative"),
        CheckConstraint("quantity > 0", name="check_commission_quantity_positive"),
        Index("idx_commission_beneficiary_calculated", "beneficiary_id", "calculated_at"),
        Index("idx_commission_beneficiary_level", "beneficiary_id", "level"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Source
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    order_line_id: Mapped[int] = mapped_column(
        ForeignKey("order_lines.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)

    # Beneficiary
    beneficiary_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    level: Mapped[CommissionLevel] = mapped_column(
        enum_column_type(CommissionLevel, length=4), nullable=False
    )

    # Amounts
    rate: Mapped[Decimal] = mapped_column(RateType, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, comment="Unit price at order time"
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, comment="unit_price * quantity"
    )
    amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, comment="base_amount * rate, rounded half-even"
    )

    # Payment
    status: Mapped[CommissionStatus] = mapped_column(
        enum_column_type(CommissionStatus),
        nullable=False,
        default=CommissionStatus.CALCULATED,
        index=True,
    )
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    paid_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    paid_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def sales_amount(self) -> Decimal:
        """Sales volume behind this commission (unit_price * quantity)."""
        return Decimal(self.unit_price) * self.quantity

    @property
    def is_paid(self) -> bool:
        """Check if commission has been paid out."""
        return self.status == CommissionStatus.PAID

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<AffiliateCommission(id={self.id}, order_id={self.order_id}, "
            f"beneficiary_id={self.beneficiary_id}, level={self.level}, "
            f"amount={self.amount}, status={self.status})>"
        )
