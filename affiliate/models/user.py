"""
User model.

Registered account that can buy, refer others and receive commissions.
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from affiliate.models.base import Base


class User(Base):
    """User model - referral tree node."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(
            "referrer_id IS NULL OR referrer_id <> id",
            name="check_user_not_self_referred",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    full_name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )

    # Referral (single direct referrer, immutable after registration)
    referrer_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, referrer_id={self.referrer_id})>"
