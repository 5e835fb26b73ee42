"""
Base repository.

Row-level access shared by the affiliate tables. Repositories never commit;
the calling service owns the transaction.
"""

from typing import Any, Generic, TypeVar

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.models.base import Base


ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Primary-key operations for one mapped table.

    Example:
        class OrderRepository(BaseRepository[Order]):
            def __init__(self, session: AsyncSession) -> None:
                super().__init__(Order, session)
    """

    def __init__(self, model: type[ModelType], session: AsyncSession) -> None:
        self.model = model
        self.session = session

    async def get_by_id(self, id: int) -> ModelType | None:
        """Load a row by primary key, None if absent."""
        return await self.session.get(self.model, id)

    async def get_for_update(self, id: int) -> ModelType | None:
        """
        Load a row by primary key and lock it until the transaction ends.

        Concurrent callers block on SELECT ... FOR UPDATE, so a status
        transition read here cannot be applied twice.

        Args:
            id: Primary key

        Returns:
            Locked row or None
        """
        stmt = select(self.model).where(self.model.id == id).with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **data: Any) -> ModelType:
        """
        Insert one row and return it with server defaults loaded.

        Args:
            **data: Column values

        Returns:
            Persisted (flushed, uncommitted) row
        """
        row = self.model(**data)
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)
        return row

    async def delete(self, id: int) -> bool:
        """
        Delete a row by primary key.

        Returns:
            False if no row had that key
        """
        result = await self.session.execute(
            delete(self.model).where(self.model.id == id)
        )
        return result.rowcount > 0

    async def bulk_create(self, items: list[dict[str, Any]]) -> list[ModelType]:
        """
        Insert many rows in one statement.

        INSERT ... RETURNING hands back the rows, so no per-row refresh
        is needed.

        Args:
            items: Column mappings

        Returns:
            Inserted rows in input order
        """
        if not items:
            return []

        stmt = insert(self.model).values(items).returning(self.model)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
