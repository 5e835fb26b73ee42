"""
Integration tests for the closure rebuild job and referral registration.
"""

import pytest

from affiliate.models.referral_closure import ClosureEdge
from affiliate.services.notification_service import REFERRAL_REGISTERED
from affiliate.services.referral.closure_rebuild import (
    ClosureRebuildJob,
    diff_closure,
)
from affiliate.services.referral.registration import ReferralRegistrationService
from affiliate.utils.exceptions import DataIntegrityError
from tests.fakes import FakeUserRepository


@pytest.fixture
def job(db, session, graph):
    return ClosureRebuildJob(session, graph=graph, user_repo=FakeUserRepository(db))


@pytest.fixture
def registration(session, graph, notifier):
    return ReferralRegistrationService(session, graph=graph, notifier=notifier)


@pytest.fixture
def users(db):
    """1 <- 2 <- 3, plus a separate root 4."""
    db.add_user(1)
    db.add_user(2, 1)
    db.add_user(3, 2)
    db.add_user(4)
    return db


class TestRun:
    """Test full rebuild."""

    @pytest.mark.asyncio
    async def test_rebuilds_from_referrers(self, job, db, users):
        report = await job.run()

        assert report.nodes == 4
        assert report.edges == 7
        assert db.edges() == {
            ClosureEdge(1, 1, 0),
            ClosureEdge(2, 2, 0),
            ClosureEdge(3, 3, 0),
            ClosureEdge(4, 4, 0),
            ClosureEdge(1, 2, 1),
            ClosureEdge(2, 3, 1),
            ClosureEdge(1, 3, 2),
        }

    @pytest.mark.asyncio
    async def test_empty(self, job, db):
        report = await job.run()

        assert report.nodes == 0
        assert report.edges == 0

    @pytest.mark.asyncio
    async def test_cycle_writes_nothing(self, job, db, users):
        await job.run()
        before = db.edges()
        db.users[1] = 3

        with pytest.raises(DataIntegrityError, match="cycle"):
            await job.run()

        assert db.edges() == before

    @pytest.mark.asyncio
    async def test_lists_users_under_rebuild_lock(self, job, db, users):
        await job.run()

        assert db.calls == ["lock_for_rebuild", "list_nodes", "replace_all"]
        assert db.commits == 1

    @pytest.mark.asyncio
    async def test_registration_after_rebuild_is_noop(self, job, graph, db, users):
        """A user listed by the rebuild is already complete when their event lands."""
        await job.run()
        before = db.edges()

        edges = await graph.insert_node(3, 2)

        assert db.edges() == before
        assert len(edges) == 3


class TestVerify:
    """Test drift detection."""

    @pytest.mark.asyncio
    async def test_clean_after_rebuild(self, job, users):
        await job.run()

        report = await job.verify()

        assert report.is_clean

    @pytest.mark.asyncio
    async def test_detects_drift(self, job, db, users):
        await job.run()
        del db.closure[(1, 3)]
        del db.closure[(2, 2)]
        db.closure[(2, 3)] = 5
        db.closure[(4, 1)] = 1

        report = await job.verify()

        assert not report.is_clean
        assert report.missing == [ClosureEdge(1, 3, 2)]
        assert report.missing_self_edges == [2]
        assert report.depth_mismatch == [(ClosureEdge(2, 3, 5), ClosureEdge(2, 3, 1))]
        assert report.unexpected == [ClosureEdge(4, 1, 1)]

    @pytest.mark.asyncio
    async def test_does_not_write(self, job, db, users):
        await job.verify()

        assert db.closure == {}
        assert db.commits == 0

    @pytest.mark.asyncio
    async def test_invalid_referrers(self, job, db):
        db.add_user(1, 42)

        with pytest.raises(DataIntegrityError, match="unknown referrer"):
            await job.verify()

    def test_diff_identical(self):
        edges = [ClosureEdge(1, 1, 0), ClosureEdge(1, 2, 1), ClosureEdge(2, 2, 0)]

        assert diff_closure(edges, list(reversed(edges))).is_clean


class TestRegistration:
    """Test referral_registered notifications."""

    @pytest.mark.asyncio
    async def test_notifies_two_referrer_levels(self, registration, notifier):
        await registration.register(1)
        await registration.register(2, 1)
        await registration.register(3, 2)
        notifier.events.clear()

        edges = await registration.register(4, 3)

        assert len(edges) == 4
        assert notifier.events == [
            (3, REFERRAL_REGISTERED, {"referral_id": 4, "depth": 1}),
            (2, REFERRAL_REGISTERED, {"referral_id": 4, "depth": 2}),
        ]

    @pytest.mark.asyncio
    async def test_root_notifies_nobody(self, registration, notifier):
        await registration.register(1)

        assert notifier.events == []

    @pytest.mark.asyncio
    async def test_failed_registration_notifies_nobody(self, registration, notifier):
        with pytest.raises(DataIntegrityError):
            await registration.register(2, 1)

        assert notifier.events == []
