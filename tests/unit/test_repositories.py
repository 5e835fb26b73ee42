"""
Unit tests for repositories with a mocked session.

Tests cover statement issuing and result mapping, not SQL semantics.
"""

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from affiliate.models.enums import CommissionLevel, CommissionStatus
from affiliate.models.referral_closure import (
    ClosureEdge,
    ReferralClosure,
    UserNode,
)
from affiliate.repositories.commission_repository import CommissionRepository
from affiliate.repositories.referral_closure_repository import (
    ReferralClosureRepository,
)
from affiliate.repositories.user_repository import UserRepository


def scalar_result(value):
    result = MagicMock()
    result.scalar.return_value = value
    result.scalar_one_or_none.return_value = value
    return result


def rows_result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    result.all.return_value = rows
    return result


class TestReferralClosureRepository:
    """Test closure repository."""

    @pytest.mark.asyncio
    async def test_has_node(self, mock_session):
        mock_session.execute.return_value = scalar_result(1)
        repo = ReferralClosureRepository(mock_session)

        assert await repo.has_node(5) is True

    @pytest.mark.asyncio
    async def test_has_node_missing(self, mock_session):
        mock_session.execute.return_value = scalar_result(0)
        repo = ReferralClosureRepository(mock_session)

        assert await repo.has_node(5) is False

    @pytest.mark.asyncio
    async def test_get_ancestors_maps_rows(self, mock_session):
        mock_session.execute.return_value = rows_result([
            ReferralClosure(ancestor_id=2, descendant_id=3, depth=1),
            ReferralClosure(ancestor_id=1, descendant_id=3, depth=2),
        ])
        repo = ReferralClosureRepository(mock_session)

        edges = await repo.get_ancestors(3, 1, 2)

        assert edges == [ClosureEdge(2, 3, 1), ClosureEdge(1, 3, 2)]

    @pytest.mark.asyncio
    async def test_insert_edges_in_batches(self, mock_session):
        result = MagicMock(rowcount=2)
        mock_session.execute.return_value = result
        repo = ReferralClosureRepository(mock_session, batch_size=2)
        edges = [ClosureEdge(i, 5, 5 - i) for i in range(1, 6)]

        await repo.insert_edges(edges)

        assert mock_session.execute.await_count == 3
        mock_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insert_nothing(self, mock_session):
        repo = ReferralClosureRepository(mock_session)

        assert await repo.insert_edges([]) == 0
        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_replace_all_deletes_then_inserts(self, mock_session):
        repo = ReferralClosureRepository(mock_session, batch_size=10)
        edges = [ClosureEdge(1, 1, 0), ClosureEdge(2, 2, 0), ClosureEdge(1, 2, 1)]

        written = await repo.replace_all(edges)

        assert written == 3
        first_statement = str(mock_session.execute.await_args_list[0].args[0])
        assert first_statement.startswith("DELETE FROM user_referral_closure")
        # delete, one insert batch
        assert mock_session.execute.await_count == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method, mode",
        [
            ("lock_for_rebuild", "EXCLUSIVE"),
            ("lock_for_registration", "ROW EXCLUSIVE"),
        ],
    )
    async def test_table_locks(self, mock_session, method, mode):
        """Registration and rebuild modes conflict with each other."""
        repo = ReferralClosureRepository(mock_session)

        await getattr(repo, method)()

        statement = str(mock_session.execute.await_args.args[0])
        assert statement == f"LOCK TABLE user_referral_closure IN {mode} MODE"


class TestCommissionRepository:
    """Test commission repository."""

    @pytest.mark.asyncio
    async def test_delete_by_order_rowcount(self, mock_session):
        mock_session.execute.return_value = MagicMock(rowcount=4)
        repo = CommissionRepository(mock_session)

        assert await repo.delete_by_order(10) == 4

    @pytest.mark.asyncio
    async def test_add_all_empty(self, mock_session):
        repo = CommissionRepository(mock_session)

        assert await repo.add_all([]) == []
        mock_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_totals_by_level_status(self, mock_session):
        row = MagicMock(
            level=CommissionLevel.F1,
            status=CommissionStatus.PAID,
            count=2,
            amount=Decimal("30"),
            sales=Decimal("100"),
        )
        mock_session.execute.return_value = rows_result([row])
        repo = CommissionRepository(mock_session)

        totals = await repo.totals_by_level_status(None)

        assert len(totals) == 1
        assert totals[0].level == CommissionLevel.F1
        assert totals[0].amount == Decimal("30")
        assert totals[0].sales == Decimal("100")

    @pytest.mark.asyncio
    async def test_find_filtered_returns_total(self, mock_session):
        mock_session.execute.side_effect = [scalar_result(12), rows_result([])]
        repo = CommissionRepository(mock_session)

        items, total = await repo.find_filtered(None, offset=10, limit=10)

        assert items == []
        assert total == 12


class TestUserRepository:
    @pytest.mark.asyncio
    async def test_list_nodes_maps_rows(self, mock_session):
        async def stream_rows():
            yield SimpleNamespace(id=1, referrer_id=None)
            yield SimpleNamespace(id=2, referrer_id=1)

        mock_session.stream = AsyncMock(return_value=stream_rows())
        repo = UserRepository(mock_session)

        nodes = await repo.list_nodes()

        assert nodes == [UserNode(1), UserNode(2, 1)]
