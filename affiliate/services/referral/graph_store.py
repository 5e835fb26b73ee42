"""
Referral graph store.

Maintains and queries the ancestor/descendant closure relation over the
referrer tree. Registration appends only rows scoped to the new node;
a full rebuild recomputes every edge from raw referrer pointers.
"""

from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from affiliate.config.settings import settings
from affiliate.models.referral_closure import ClosureEdge, UserNode
from affiliate.repositories.referral_closure_repository import (
    ReferralClosureRepository,
)
from affiliate.services.base_service import BaseService, transaction
from affiliate.utils.exceptions import (
    DataIntegrityError,
    ReferrerNotRegisteredError,
)


def compute_closure(
    nodes: Iterable[UserNode], max_depth: int
) -> list[ClosureEdge]:
    """
    Compute the full closure relation from (id, parent_id) pairs.

    Walks each node's referrer chain once, reusing chains already computed
    for its ancestors.

    Args:
        nodes: Every node of the forest
        max_depth: Longest accepted referrer chain

    Returns:
        All closure edges, self-edges included

    Raises:
        DataIntegrityError: On duplicate node IDs, unknown parents, cycles,
            or chains longer than max_depth
    """
    parents: dict[int, int | None] = {}
    for node in nodes:
        if node.id in parents:
            raise DataIntegrityError(f"Duplicate node {node.id} in rebuild input")
        parents[node.id] = node.parent_id

    for node_id, parent_id in parents.items():
        if parent_id is not None and parent_id not in parents:
            raise DataIntegrityError(
                f"Node {node_id} references unknown referrer {parent_id}"
            )

    # node -> ancestor ids, nearest first
    chains: dict[int, list[int]] = {}

    for start in parents:
        if start in chains:
            continue

        path: list[int] = []
        on_path: set[int] = set()
        current: int | None = start
        while current is not None and current not in chains:
            if current in on_path:
                cycle = path[path.index(current):] + [current]
                raise DataIntegrityError(
                    f"Referral cycle detected: {' -> '.join(map(str, cycle))}"
                )
            on_path.add(current)
            path.append(current)
            current = parents[current]

        tail = [] if current is None else [current, *chains[current]]
        for node_id in reversed(path):
            if len(tail) > max_depth:
                raise DataIntegrityError(
                    f"Referrer chain of node {node_id} has {len(tail)} levels, "
                    f"above the configured maximum of {max_depth}"
                )
            chains[node_id] = tail
            tail = [node_id, *tail]

    edges: list[ClosureEdge] = []
    for node_id, chain in chains.items():
        edges.append(ClosureEdge(node_id, node_id, 0))
        edges.extend(
            ClosureEdge(ancestor_id, node_id, depth)
            for depth, ancestor_id in enumerate(chain, start=1)
        )
    return edges


def _check_depth_band(min_depth: int, max_depth: int | None) -> None:
    if min_depth < 0:
        raise ValueError("min_depth must be >= 0")
    if max_depth is not None and max_depth < min_depth:
        raise ValueError("max_depth must be >= min_depth")


class ReferralGraphStore(BaseService):
    """
    Closure-table backed referral hierarchy.

    Example:
        graph = ReferralGraphStore(session)
        await graph.insert_node(42, parent_id=7)
        ancestors = await graph.get_ancestors(42, 1, 2)
    """

    def __init__(
        self,
        session: AsyncSession,
        closure_repo: ReferralClosureRepository | None = None,
        max_depth: int | None = None,
    ) -> None:
        """
        Initialize graph store.

        Args:
            session: Async database session
            closure_repo: Closure repository (defaults to one on session)
            max_depth: Longest accepted referrer chain
        """
        super().__init__(session)
        self.closure_repo = closure_repo or ReferralClosureRepository(
            session, batch_size=settings.closure_rebuild_batch_size
        )
        self.max_depth = (
            settings.referral_closure_max_depth if max_depth is None else max_depth
        )

    @transaction
    async def insert_node(
        self, node_id: int, parent_id: int | None = None
    ) -> list[ClosureEdge]:
        """
        Register a node under its direct referrer.

        Inserts the self-edge, the parent edge and one edge per ancestor of
        the parent, in one transaction. Re-running with the same arguments
        inserts nothing.

        Args:
            node_id: New user ID
            parent_id: Direct referrer ID, None for a root

        Returns:
            Closure edges of the node (ordered by depth)

        Raises:
            ReferrerNotRegisteredError: If the parent has no self-edge yet
            DataIntegrityError: Self-referral, node already registered
                under another parent, or chain too deep
        """
        if parent_id is not None and parent_id == node_id:
            raise DataIntegrityError(f"Node {node_id} cannot refer itself")

        # Held until commit: a rebuild cannot swap the relation under our reads
        await self.closure_repo.lock_for_registration()

        if await self.closure_repo.has_node(node_id):
            existing = await self.closure_repo.get_ancestors(node_id, 1, 1)
            existing_parent = existing[0].ancestor_id if existing else None
            if existing_parent != parent_id:
                raise DataIntegrityError(
                    f"Node {node_id} is already registered under referrer "
                    f"{existing_parent}, cannot re-register under {parent_id}"
                )

        edges = [ClosureEdge(node_id, node_id, 0)]

        if parent_id is not None:
            if not await self.closure_repo.has_node(parent_id):
                raise ReferrerNotRegisteredError(parent_id)

            parent_ancestors = await self.closure_repo.get_ancestors(parent_id, 1)
            depth = len(parent_ancestors) + 1
            if depth > self.max_depth:
                raise DataIntegrityError(
                    f"Registering node {node_id} under {parent_id} would create "
                    f"a chain of {depth} levels, above the configured maximum "
                    f"of {self.max_depth}"
                )

            edges.append(ClosureEdge(parent_id, node_id, 1))
            edges.extend(
                ClosureEdge(edge.ancestor_id, node_id, edge.depth + 1)
                for edge in parent_ancestors
            )

        inserted = await self.closure_repo.insert_edges(edges)

        self.logger.info(
            "Referral node registered",
            extra={
                "node_id": node_id,
                "parent_id": parent_id,
                "edges": len(edges),
                "inserted": inserted,
            },
        )
        return edges

    async def is_registered(self, node_id: int) -> bool:
        """Check whether a node has its self-edge."""
        return await self.closure_repo.has_node(node_id)

    async def get_ancestors(
        self,
        node_id: int,
        min_depth: int = 1,
        max_depth: int | None = None,
    ) -> list[ClosureEdge]:
        """
        Get ancestor edges of a node, nearest first.

        Args:
            node_id: User ID
            min_depth: Minimum depth (inclusive)
            max_depth: Maximum depth (inclusive), None for unbounded

        Returns:
            Edges ordered by depth ascending
        """
        _check_depth_band(min_depth, max_depth)
        return await self.closure_repo.get_ancestors(node_id, min_depth, max_depth)

    async def get_descendants(
        self,
        node_id: int,
        min_depth: int = 1,
        max_depth: int | None = None,
    ) -> list[ClosureEdge]:
        """
        Get descendant edges of a node, direct referrals first.

        Args:
            node_id: User ID
            min_depth: Minimum depth (inclusive)
            max_depth: Maximum depth (inclusive), None for unbounded

        Returns:
            Edges ordered by depth ascending
        """
        _check_depth_band(min_depth, max_depth)
        return await self.closure_repo.get_descendants(node_id, min_depth, max_depth)

    async def get_direct_referrals(self, node_id: int) -> list[ClosureEdge]:
        """Descendants at depth 1."""
        return await self.get_descendants(node_id, 1, 1)

    async def get_indirect_referrals(
        self, node_id: int, max_depth: int | None = None
    ) -> list[ClosureEdge]:
        """Descendants at depth 2 and below."""
        return await self.get_descendants(node_id, 2, max_depth)

    async def get_depth(self, ancestor_id: int, descendant_id: int) -> int | None:
        """
        Distance between two nodes in the hierarchy.

        Args:
            ancestor_id: Candidate ancestor
            descendant_id: Candidate descendant

        Returns:
            Depth, or None if descendant is not below ancestor
        """
        edge = await self.closure_repo.get_edge(ancestor_id, descendant_id)
        return edge.depth if edge else None

    @transaction
    async def rebuild_all(self, nodes: Iterable[UserNode]) -> int:
        """
        Recompute and replace the whole closure relation.

        The new relation is computed in memory first; cycles, unknown
        referrers and over-deep chains abort before anything is written,
        leaving the stored relation untouched.

        Prefer rebuild_from when the pairs come from the database: pairs
        read before this call can miss users registered in the meantime.

        Args:
            nodes: Every (id, parent_id) pair

        Returns:
            Number of edges written

        Raises:
            DataIntegrityError: If the input is not a valid forest
        """
        await self.closure_repo.lock_for_rebuild()
        return await self._replace(list(nodes))

    @transaction
    async def rebuild_from(
        self, load_nodes: Callable[[], Awaitable[list[UserNode]]]
    ) -> tuple[int, int]:
        """
        Rebuild from pairs loaded while registrations are locked out.

        The rebuild lock is taken before load_nodes runs, so every user
        committed before the lock is in the new relation and every later
        registration waits for the swap, then inserts on top of it.

        Args:
            load_nodes: Coroutine function returning every (id, parent_id)

        Returns:
            (nodes processed, edges written)

        Raises:
            DataIntegrityError: If the loaded pairs are not a valid forest
        """
        await self.closure_repo.lock_for_rebuild()
        nodes = await load_nodes()
        return len(nodes), await self._replace(nodes)

    async def _replace(self, nodes: list[UserNode]) -> int:
        edges = compute_closure(nodes, self.max_depth)
        written = await self.closure_repo.replace_all(edges)

        self.logger.info(
            "Referral closure rebuilt",
            extra={"nodes": len(nodes), "edges": written},
        )
        return written
