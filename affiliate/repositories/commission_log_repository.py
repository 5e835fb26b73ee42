"""
Commission log repository.

Append-only access to affiliate_commission_logs.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.models.commission_log import AffiliateCommissionLog
from affiliate.models.enums import CalculationOutcome
from affiliate.repositories.base import BaseRepository


class CommissionLogRepository(BaseRepository[AffiliateCommissionLog]):
    """Commission calculation log repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize log repository."""
        super().__init__(AffiliateCommissionLog, session)

    async def append(
        self,
        order_id: int,
        outcome: CalculationOutcome,
        total_amount: Decimal = Decimal("0"),
        record_count: int = 0,
        processed_by: str = "",
        notes: str = "",
    ) -> AffiliateCommissionLog:
        """
        Append a calculation attempt.

        Args:
            order_id: Order ID
            outcome: Attempt outcome
            total_amount: Sum of persisted commission amounts
            record_count: Number of persisted commission rows
            processed_by: Operator or worker identifier
            notes: Free text (error message on failure)

        Returns:
            Created log entry
        """
        return await self.create(
            order_id=order_id,
            outcome=outcome,
            total_amount=total_amount,
            record_count=record_count,
            processed_by=processed_by,
            notes=notes,
        )

    async def list_by_order(self, order_id: int) -> list[AffiliateCommissionLog]:
        """
        Get all attempts for an order, oldest first.

        Args:
            order_id: Order ID

        Returns:
            Log entries
        """
        stmt = (
            select(AffiliateCommissionLog)
            .where(AffiliateCommissionLog.order_id == order_id)
            .order_by(AffiliateCommissionLog.created_at.asc(), AffiliateCommissionLog.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
