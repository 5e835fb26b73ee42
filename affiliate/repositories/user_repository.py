"""
User repository.

Data access layer for User model.
"""

from collections.abc import AsyncIterator

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.models.referral_closure import UserNode
from affiliate.models.user import User
from affiliate.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository with referral-tree queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def iter_nodes(self, batch_size: int = 5000) -> AsyncIterator[UserNode]:
        """
        Stream (id, referrer_id) pairs for every user.

        Args:
            batch_size: Rows fetched per round trip

        Yields:
            UserNode for each user
        """
        stmt = (
            select(User.id, User.referrer_id)
            .order_by(User.id)
            .execution_options(yield_per=batch_size)
        )
        result = await self.session.stream(stmt)
        async for row in result:
            yield UserNode(id=row.id, parent_id=row.referrer_id)

    async def list_nodes(self) -> list[UserNode]:
        """
        Load (id, referrer_id) pairs for every user.

        Returns:
            All user nodes
        """
        return [node async for node in self.iter_nodes()]
