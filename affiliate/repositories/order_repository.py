"""
Order repository.

Read-only access to orders and their lines.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from affiliate.models.order import Order
from affiliate.repositories.base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """Order repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize order repository."""
        super().__init__(Order, session)

    async def get_with_lines(self, order_id: int) -> Order | None:
        """
        Get order with its lines eagerly loaded.

        Args:
            order_id: Order ID

        Returns:
            Order or None if not found
        """
        stmt = (
            select(Order)
            .options(selectinload(Order.lines))
            .where(Order.id == order_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_many_with_lines(self, order_ids: list[int]) -> dict[int, Order]:
        """
        Get several orders with lines in one query.

        Args:
            order_ids: Order IDs

        Returns:
            Mapping of order ID to order (missing IDs are absent)
        """
        if not order_ids:
            return {}

        stmt = (
            select(Order)
            .options(selectinload(Order.lines))
            .where(Order.id.in_(order_ids))
        )
        result = await self.session.execute(stmt)
        return {order.id: order for order in result.scalars().all()}
