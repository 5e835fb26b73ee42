"""
Referral registration.

Handles the UserRegistered event: adds the new account to the closure
relation and tells its referrers about it.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.config.commission_rates import FAN_OUT_DEPTH
from affiliate.models.referral_closure import ClosureEdge
from affiliate.services.base_service import BaseService
from affiliate.services.notification_service import (
    REFERRAL_REGISTERED,
    LoggingNotifier,
    Notifier,
    send_notification,
)
from affiliate.services.referral.graph_store import ReferralGraphStore


class ReferralRegistrationService(BaseService):
    """Registers new accounts in the referral hierarchy."""

    def __init__(
        self,
        session: AsyncSession,
        graph: ReferralGraphStore | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        """
        Initialize registration service.

        Args:
            session: Async database session
            graph: Graph store (defaults to one on session)
            notifier: Event notifier (defaults to LoggingNotifier)
        """
        super().__init__(session)
        self.graph = graph or ReferralGraphStore(session)
        self.notifier = notifier or LoggingNotifier()

    async def register(
        self, node_id: int, parent_id: int | None = None
    ) -> list[ClosureEdge]:
        """
        Register a user under its direct referrer.

        The closure rows are committed before any referrer is notified.
        Direct (depth 1) and indirect (depth 2) referrers each receive a
        referral_registered event.

        Args:
            node_id: New user ID
            parent_id: Direct referrer ID, None for a root account

        Returns:
            Closure edges of the new node

        Raises:
            DataIntegrityError: If the node cannot be placed in the tree
        """
        edges = await self.graph.insert_node(node_id, parent_id)

        referrers = [
            edge for edge in edges if 1 <= edge.depth <= FAN_OUT_DEPTH
        ]
        for edge in referrers:
            await send_notification(
                self.notifier,
                edge.ancestor_id,
                REFERRAL_REGISTERED,
                {"referral_id": node_id, "depth": edge.depth},
            )

        self.logger.info(
            f"User {node_id} registered in referral tree",
            extra={
                "node_id": node_id,
                "parent_id": parent_id,
                "notified": [edge.ancestor_id for edge in referrers],
            },
        )
        return edges
