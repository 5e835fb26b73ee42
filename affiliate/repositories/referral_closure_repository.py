"""
Referral closure repository.

Data access layer for the user_referral_closure table.
"""

from collections.abc import Iterable

from sqlalchemy import delete, func, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.models.referral_closure import ClosureEdge, ReferralClosure


class ReferralClosureRepository:
    """Closure table persistence. Returns ClosureEdge value objects."""

    def __init__(self, session: AsyncSession, batch_size: int = 1000) -> None:
        """
        Initialize closure repository.

        Args:
            session: Async database session
            batch_size: Rows per INSERT statement for bulk writes
        """
        self.session = session
        self.batch_size = batch_size

    async def has_node(self, node_id: int) -> bool:
        """
        Check whether a node is registered (has its self-edge).

        Args:
            node_id: User ID

        Returns:
            True if the depth-0 edge exists
        """
        stmt = select(func.count()).select_from(ReferralClosure).where(
            ReferralClosure.ancestor_id == node_id,
            ReferralClosure.descendant_id == node_id,
            ReferralClosure.depth == 0,
        )
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def get_edge(
        self, ancestor_id: int, descendant_id: int
    ) -> ClosureEdge | None:
        """
        Get edge for an (ancestor, descendant) pair.

        Args:
            ancestor_id: Ancestor user ID
            descendant_id: Descendant user ID

        Returns:
            Edge or None
        """
        row = await self.session.get(
            ReferralClosure, (ancestor_id, descendant_id)
        )
        return row.to_edge() if row else None

    async def get_ancestors(
        self,
        node_id: int,
        min_depth: int = 1,
        max_depth: int | None = None,
    ) -> list[ClosureEdge]:
        """
        Get edges pointing up from a node, nearest ancestor first.

        Args:
            node_id: Descendant user ID
            min_depth: Minimum depth (inclusive)
            max_depth: Maximum depth (inclusive), None for unbounded

        Returns:
            Edges ordered by depth ascending
        """
        stmt = select(ReferralClosure).where(
            ReferralClosure.descendant_id == node_id,
            ReferralClosure.depth >= min_depth,
        )
        if max_depth is not None:
            stmt = stmt.where(ReferralClosure.depth <= max_depth)
        stmt = stmt.order_by(
            ReferralClosure.depth.asc(), ReferralClosure.ancestor_id.asc()
        )

        result = await self.session.execute(stmt)
        return [row.to_edge() for row in result.scalars().all()]

    async def get_descendants(
        self,
        node_id: int,
        min_depth: int = 1,
        max_depth: int | None = None,
    ) -> list[ClosureEdge]:
        """
        Get edges pointing down from a node, direct referrals first.

        Args:
            node_id: Ancestor user ID
            min_depth: Minimum depth (inclusive)
            max_depth: Maximum depth (inclusive), None for unbounded

        Returns:
            Edges ordered by depth ascending
        """
        stmt = select(ReferralClosure).where(
            ReferralClosure.ancestor_id == node_id,
            ReferralClosure.depth >= min_depth,
        )
        if max_depth is not None:
            stmt = stmt.where(ReferralClosure.depth <= max_depth)
        stmt = stmt.order_by(
            ReferralClosure.depth.asc(), ReferralClosure.descendant_id.asc()
        )

        result = await self.session.execute(stmt)
        return [row.to_edge() for row in result.scalars().all()]

    async def insert_edges(self, edges: Iterable[ClosureEdge]) -> int:
        """
        Insert edges, skipping pairs that already exist.

        Uses INSERT ... ON CONFLICT DO NOTHING so retried registrations are
        no-ops instead of unique violations.

        Args:
            edges: Edges to insert

        Returns:
            Number of rows actually inserted
        """
        rows = [edge.as_row() for edge in edges]
        inserted = 0
        for start in range(0, len(rows), self.batch_size):
            stmt = (
                pg_insert(ReferralClosure)
                .values(rows[start:start + self.batch_size])
                .on_conflict_do_nothing(
                    index_elements=["ancestor_id", "descendant_id"]
                )
            )
            result = await self.session.execute(stmt)
            inserted += max(result.rowcount or 0, 0)
        await self.session.flush()
        return inserted

    async def lock_for_registration(self) -> None:
        """
        Take ROW EXCLUSIVE on the closure table until the transaction ends.

        Registrations share this mode with each other; it conflicts with
        lock_for_rebuild, so a registration never reads ancestors from a
        relation that a rebuild is about to replace.
        """
        await self._lock_table("ROW EXCLUSIVE")

    async def lock_for_rebuild(self) -> None:
        """
        Take EXCLUSIVE on the closure table until the transaction ends.

        Readers keep going; registrations wait until the rebuild commits.
        """
        await self._lock_table("EXCLUSIVE")

    async def _lock_table(self, mode: str) -> None:
        await self.session.execute(
            text(f"LOCK TABLE {ReferralClosure.__tablename__} IN {mode} MODE")
        )

    async def replace_all(self, edges: Iterable[ClosureEdge]) -> int:
        """
        Replace the whole closure relation.

        Runs in the caller's transaction, which must already hold
        lock_for_rebuild.

        Args:
            edges: Complete new relation

        Returns:
            Number of rows written
        """
        await self.session.execute(delete(ReferralClosure))

        rows = [edge.as_row() for edge in edges]
        for start in range(0, len(rows), self.batch_size):
            await self.session.execute(
                pg_insert(ReferralClosure).values(
                    rows[start:start + self.batch_size]
                )
            )
        await self.session.flush()
        return len(rows)

    async def all_edges(self) -> list[ClosureEdge]:
        """
        Load the whole relation (maintenance use only).

        Returns:
            All stored edges
        """
        stmt = select(ReferralClosure).order_by(
            ReferralClosure.descendant_id, ReferralClosure.depth
        )
        result = await self.session.execute(stmt)
        return [row.to_edge() for row in result.scalars().all()]

    async def count_edges(self) -> int:
        """
        Count stored edges.

        Returns:
            Row count
        """
        result = await self.session.execute(
            select(func.count()).select_from(ReferralClosure)
        )
        return result.scalar() or 0
