"""
Closure rebuild job.

Reconstructs the referral closure relation from the users' referrer
pointers, and checks the stored relation against them.
"""

import time
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.models.referral_closure import ClosureEdge
from affiliate.repositories.user_repository import UserRepository
from affiliate.services.base_service import BaseService, log_operation
from affiliate.services.referral.graph_store import (
    ReferralGraphStore,
    compute_closure,
)


@dataclass(frozen=True)
class RebuildReport:
    """Result of a full rebuild."""

    nodes: int
    edges: int
    duration: float


@dataclass
class IntegrityReport:
    """Differences between the stored and the expected closure relation."""

    missing: list[ClosureEdge] = field(default_factory=list)
    unexpected: list[ClosureEdge] = field(default_factory=list)
    # (stored, expected) pairs for the same (ancestor, descendant)
    depth_mismatch: list[tuple[ClosureEdge, ClosureEdge]] = field(
        default_factory=list
    )
    missing_self_edges: list[int] = field(default_factory=list)

    @property
    def is_clean(self) -> bool:
        """True if the stored relation matches the referrer pointers."""
        return not (
            self.missing
            or self.unexpected
            or self.depth_mismatch
            or self.missing_self_edges
        )


def diff_closure(
    stored: list[ClosureEdge], expected: list[ClosureEdge]
) -> IntegrityReport:
    """
    Compare two closure relations.

    Args:
        stored: Edges currently persisted
        expected: Edges computed from referrer pointers

    Returns:
        Integrity report
    """
    stored_by_pair = {(e.ancestor_id, e.descendant_id): e for e in stored}
    expected_by_pair = {(e.ancestor_id, e.descendant_id): e for e in expected}

    report = IntegrityReport()
    for pair, edge in expected_by_pair.items():
        actual = stored_by_pair.get(pair)
        if actual is None:
            if edge.depth == 0:
                report.missing_self_edges.append(edge.descendant_id)
            else:
                report.missing.append(edge)
        elif actual.depth != edge.depth:
            report.depth_mismatch.append((actual, edge))

    report.unexpected = [
        edge for pair, edge in stored_by_pair.items()
        if pair not in expected_by_pair
    ]
    return report


class ClosureRebuildJob(BaseService):
    """
    Full closure reconstruction.

    Used for initial backfill, after bulk imports, and to repair drift
    detected by verify().
    """

    def __init__(
        self,
        session: AsyncSession,
        graph: ReferralGraphStore | None = None,
        user_repo: UserRepository | None = None,
    ) -> None:
        """
        Initialize rebuild job.

        Args:
            session: Async database session
            graph: Graph store (defaults to one on session)
            user_repo: User repository (defaults to one on session)
        """
        super().__init__(session)
        self.graph = graph or ReferralGraphStore(session)
        self.user_repo = user_repo or UserRepository(session)

    @log_operation
    async def run(self) -> RebuildReport:
        """
        Rebuild the closure relation from every user's referrer pointer.

        Returns:
            Rebuild report

        Raises:
            DataIntegrityError: On cycles, dangling referrers or chains
                above the configured depth (nothing is written)
        """
        started = time.monotonic()

        # Users are listed under the rebuild lock, inside the same transaction
        nodes, edges = await self.graph.rebuild_from(self.user_repo.list_nodes)

        report = RebuildReport(
            nodes=nodes,
            edges=edges,
            duration=round(time.monotonic() - started, 3),
        )
        self.logger.info(
            f"Closure rebuild finished: {report.nodes} nodes, {report.edges} edges",
            extra={"duration_seconds": report.duration},
        )
        return report

    async def verify(self) -> IntegrityReport:
        """
        Check the stored relation without writing.

        Returns:
            Integrity report (is_clean is True when nothing drifted)

        Raises:
            DataIntegrityError: If the referrer pointers themselves are
                not a valid forest
        """
        nodes = await self.user_repo.list_nodes()
        expected = compute_closure(nodes, self.graph.max_depth)
        stored = await self.graph.closure_repo.all_edges()

        report = diff_closure(stored, expected)
        if report.is_clean:
            self.logger.info(
                "Referral closure verified",
                extra={"nodes": len(nodes), "edges": len(stored)},
            )
        else:
            self.logger.warning(
                "Referral closure drift detected",
                extra={
                    "missing": len(report.missing),
                    "unexpected": len(report.unexpected),
                    "depth_mismatch": len(report.depth_mismatch),
                    "missing_self_edges": len(report.missing_self_edges),
                },
            )
        return report
