"""
Referral closure model.

Materialized ancestor/descendant relation over the referrer tree.
Every node has a depth-0 self-edge; edge (a, b, d) exists iff b reaches a
by following d referrer pointers.
"""

from dataclasses import dataclass

from sqlalchemy import CheckConstraint, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from affiliate.models.base import Base


class ReferralClosure(Base):
    """Closure table row."""

    __tablename__ = "user_referral_closure"
    __table_args__ = (
        CheckConstraint("depth >= 0", name="check_closure_depth_non_negative"),
        Index("idx_closure_descendant_depth", "descendant_id", "depth"),
        Index("idx_closure_ancestor_depth", "ancestor_id", "depth"),
    )

    # No FK to users: the rebuild swaps the whole relation in bulk and
    # integrity is checked by ClosureRebuildJob.verify()
    ancestor_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    descendant_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    depth: Mapped[int] = mapped_column(Integer, nullable=False)

    def to_edge(self) -> "ClosureEdge":
        """Convert row to value object."""
        return ClosureEdge(self.ancestor_id, self.descendant_id, self.depth)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<ReferralClosure({self.ancestor_id} -> {self.descendant_id}, "
            f"depth={self.depth})>"
        )


@dataclass(frozen=True, slots=True)
class ClosureEdge:
    """Closure edge value object."""

    ancestor_id: int
    descendant_id: int
    depth: int

    def as_row(self) -> dict[str, int]:
        """Column mapping for bulk inserts."""
        return {
            "ancestor_id": self.ancestor_id,
            "descendant_id": self.descendant_id,
            "depth": self.depth,
        }


@dataclass(frozen=True, slots=True)
class UserNode:
    """Raw (id, parent) pair as stored on the users table."""

    id: int
    parent_id: int | None = None
