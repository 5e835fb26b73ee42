"""
Order models.

Orders and their lines are written by the e-commerce subsystem; the
affiliate core only reads them. unit_price is the price at order time.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from affiliate.models.base import Base
from affiliate.models.enums import OrderStatus
from affiliate.models.types import MoneyType, enum_column_type


class Order(Base):
    """Customer order."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    code: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )

    # Guest checkouts have no account and therefore no referral chain
    buyer_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status: Mapped[OrderStatus] = mapped_column(
        enum_column_type(OrderStatus),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    purchase_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    lines: Mapped[list["OrderLine"]] = relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.id",
        lazy="selectin",
    )

    @property
    def total(self) -> Decimal:
        """Order value at purchase prices."""
        return sum(
            (line.line_total for line in self.lines), Decimal("0")
        )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Order(id={self.id}, code={self.code}, status={self.status})>"


class OrderLine(Base):
    """Single product line of an order."""

    __tablename__ = "order_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="check_order_line_quantity_positive"),
        CheckConstraint(
            "unit_price >= 0", name="check_order_line_price_non_negative"
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    product_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    category_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # Raw value: unknown groups are reported per line by the engine
    category_group: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    order: Mapped["Order"] = relationship("Order", back_populates="lines")

    @property
    def line_total(self) -> Decimal:
        """quantity * unit_price."""
        return Decimal(self.unit_price) * self.quantity
