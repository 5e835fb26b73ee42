"""
Commission repository.

Data access layer for AffiliateCommission model.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.models.commission import AffiliateCommission
from affiliate.models.enums import CommissionLevel, CommissionStatus
from affiliate.repositories.base import BaseRepository
from affiliate.repositories.filters import (
    CommissionFilter,
    build_commission_conditions,
)


@dataclass(frozen=True)
class LevelStatusTotals:
    """Aggregated commission figures for one (level, status) bucket."""

    level: CommissionLevel
    status: CommissionStatus
    count: int
    amount: Decimal
    sales: Decimal


@dataclass(frozen=True)
class OrderCommissionTotal:
    """A beneficiary's commission on one order at one level."""

    order_id: int
    amount: Decimal
    last_calculated_at: datetime


class CommissionRepository(BaseRepository[AffiliateCommission]):
    """Commission repository with filtering and aggregation queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize commission repository."""
        super().__init__(AffiliateCommission, session)

    async def delete_by_order(self, order_id: int) -> int:
        """
        Delete every commission of an order.

        Args:
            order_id: Order ID

        Returns:
            Number of deleted rows
        """
        stmt = delete(AffiliateCommission).where(
            AffiliateCommission.order_id == order_id
        )
        result = await self.session.execute(stmt)
        await self.session.flush()
        return result.rowcount or 0

    async def add_all(
        self, records: list[dict[str, Any]]
    ) -> list[AffiliateCommission]:
        """
        Insert commission rows in one statement.

        Args:
            records: Column mappings

        Returns:
            Created commissions
        """
        return await self.bulk_create(records)

    async def list_by_order(self, order_id: int) -> list[AffiliateCommission]:
        """
        Get all commissions of an order.

        Args:
            order_id: Order ID

        Returns:
            Commissions ordered by line, then level
        """
        stmt = (
            select(AffiliateCommission)
            .where(AffiliateCommission.order_id == order_id)
            .order_by(
                AffiliateCommission.order_line_id.asc(),
                AffiliateCommission.level.desc(),
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_filtered(
        self,
        filters: CommissionFilter | None,
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[AffiliateCommission], int]:
        """
        Find commissions matching a filter, newest first.

        Args:
            filters: Filter criteria
            offset: Rows to skip
            limit: Max rows, None for all

        Returns:
            Tuple of (page items, total matching count)
        """
        conditions = build_commission_conditions(filters)

        count_stmt = select(func.count(AffiliateCommission.id)).where(*conditions)
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar() or 0

        stmt = (
            select(AffiliateCommission)
            .where(*conditions)
            .order_by(
                AffiliateCommission.calculated_at.desc(),
                AffiliateCommission.id.desc(),
            )
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total

    async def totals_by_level_status(
        self, filters: CommissionFilter | None
    ) -> list[LevelStatusTotals]:
        """
        Aggregate count, amount and sales per (level, status).

        Optimized to avoid loading rows - uses SQL GROUP BY.

        Args:
            filters: Filter criteria

        Returns:
            One entry per non-empty bucket
        """
        stmt = (
            select(
                AffiliateCommission.level,
                AffiliateCommission.status,
                func.count(AffiliateCommission.id).label("count"),
                func.coalesce(
                    func.sum(AffiliateCommission.amount), Decimal("0")
                ).label("amount"),
                func.coalesce(
                    func.sum(
                        AffiliateCommission.unit_price * AffiliateCommission.quantity
                    ),
                    Decimal("0"),
                ).label("sales"),
            )
            .where(*build_commission_conditions(filters))
            .group_by(AffiliateCommission.level, AffiliateCommission.status)
        )

        result = await self.session.execute(stmt)
        return [
            LevelStatusTotals(
                level=row.level,
                status=row.status,
                count=row.count,
                amount=Decimal(row.amount),
                sales=Decimal(row.sales),
            )
            for row in result.all()
        ]

    async def recent_orders(
        self,
        filters: CommissionFilter | None,
        limit: int,
    ) -> list[OrderCommissionTotal]:
        """
        Most recent distinct orders matching a filter.

        Commission amounts are summed over the matching rows of each order.

        Args:
            filters: Filter criteria (usually beneficiary + level)
            limit: Max orders

        Returns:
            Orders ordered by latest calculation time, newest first
        """
        last_calculated = func.max(AffiliateCommission.calculated_at)
        stmt = (
            select(
                AffiliateCommission.order_id,
                func.sum(AffiliateCommission.amount).label("amount"),
                last_calculated.label("last_calculated_at"),
            )
            .where(*build_commission_conditions(filters))
            .group_by(AffiliateCommission.order_id)
            .order_by(last_calculated.desc(), AffiliateCommission.order_id.desc())
            .limit(limit)
        )

        result = await self.session.execute(stmt)
        return [
            OrderCommissionTotal(
                order_id=row.order_id,
                amount=Decimal(row.amount),
                last_calculated_at=row.last_calculated_at,
            )
            for row in result.all()
        ]
