"""
Unit tests for the in-memory closure computation.

Tests cover:
- Self-edges and depths for simple chains
- Transitivity over random forests
- Cycle, unknown referrer and depth bound detection
"""

import random

import pytest

from affiliate.models.referral_closure import ClosureEdge, UserNode
from affiliate.services.referral.closure_rebuild import diff_closure
from affiliate.services.referral.graph_store import compute_closure
from affiliate.utils.exceptions import DataIntegrityError


def random_forest(seed: int, size: int) -> list[UserNode]:
    """Random forest where every parent has a smaller ID than its child."""
    rng = random.Random(seed)
    nodes = []
    for node_id in range(1, size + 1):
        if node_id == 1 or rng.random() < 0.15:
            parent = None
        else:
            parent = rng.randint(1, node_id - 1)
        nodes.append(UserNode(node_id, parent))
    rng.shuffle(nodes)
    return nodes


def as_map(edges: list[ClosureEdge]) -> dict[tuple[int, int], int]:
    return {(e.ancestor_id, e.descendant_id): e.depth for e in edges}


class TestComputeClosure:
    """Test compute_closure on valid forests."""

    def test_chain(self):
        """A <- B <- C produces every ancestor pair with its distance."""
        edges = compute_closure(
            [UserNode(1), UserNode(2, 1), UserNode(3, 2)], max_depth=10
        )

        assert set(edges) == {
            ClosureEdge(1, 1, 0),
            ClosureEdge(2, 2, 0),
            ClosureEdge(3, 3, 0),
            ClosureEdge(1, 2, 1),
            ClosureEdge(2, 3, 1),
            ClosureEdge(1, 3, 2),
        }

    def test_input_order_does_not_matter(self):
        """Children listed before their parents give the same relation."""
        forward = compute_closure(
            [UserNode(1), UserNode(2, 1), UserNode(3, 2), UserNode(4, 2)], 10
        )
        backward = compute_closure(
            [UserNode(4, 2), UserNode(3, 2), UserNode(2, 1), UserNode(1)], 10
        )

        assert set(forward) == set(backward)

    def test_empty_input(self):
        """No nodes, no edges."""
        assert compute_closure([], max_depth=10) == []

    @pytest.mark.parametrize("seed", [1, 7, 42, 2024])
    def test_single_self_edge_per_node(self, seed):
        """Every node has exactly one depth-0 edge, and it points to itself."""
        nodes = random_forest(seed, 200)
        edges = compute_closure(nodes, max_depth=200)

        self_edges = [e for e in edges if e.depth == 0]
        assert sorted(e.descendant_id for e in self_edges) == sorted(
            n.id for n in nodes
        )
        assert all(e.ancestor_id == e.descendant_id for e in self_edges)
        assert len(as_map(edges)) == len(edges)

    @pytest.mark.parametrize("seed", [3, 11, 99])
    def test_transitivity(self, seed):
        """(a, b, d1) and (b, c, d2) imply (a, c, d1 + d2)."""
        edges = compute_closure(random_forest(seed, 120), max_depth=120)
        relation = as_map(edges)

        by_ancestor: dict[int, list[ClosureEdge]] = {}
        for edge in edges:
            by_ancestor.setdefault(edge.ancestor_id, []).append(edge)

        for first in edges:
            for second in by_ancestor.get(first.descendant_id, []):
                key = (first.ancestor_id, second.descendant_id)
                assert relation[key] == first.depth + second.depth

    @pytest.mark.parametrize("seed", [5, 8])
    def test_depth_matches_parent_walk(self, seed):
        """Every edge depth equals the number of parent hops."""
        nodes = random_forest(seed, 80)
        parents = {n.id: n.parent_id for n in nodes}

        for edge in compute_closure(nodes, max_depth=80):
            current, hops = edge.descendant_id, 0
            while current != edge.ancestor_id:
                current = parents[current]
                hops += 1
            assert hops == edge.depth


class TestComputeClosureErrors:
    """Test compute_closure on invalid input."""

    def test_cycle(self):
        """A parent cycle is rejected."""
        nodes = [UserNode(1, 3), UserNode(2, 1), UserNode(3, 2), UserNode(4)]

        with pytest.raises(DataIntegrityError, match="cycle"):
            compute_closure(nodes, max_depth=10)

    def test_cycle_below_valid_tree(self):
        """A cycle reached from an already-resolved branch is still found."""
        nodes = [UserNode(1), UserNode(2, 1), UserNode(5, 6), UserNode(6, 5)]

        with pytest.raises(DataIntegrityError, match="cycle"):
            compute_closure(nodes, max_depth=10)

    def test_unknown_parent(self):
        """A referrer pointer to a missing node is rejected."""
        with pytest.raises(DataIntegrityError, match="unknown referrer 99"):
            compute_closure([UserNode(1), UserNode(2, 99)], max_depth=10)

    def test_duplicate_node(self):
        """The same node twice is rejected."""
        with pytest.raises(DataIntegrityError, match="Duplicate"):
            compute_closure([UserNode(1), UserNode(1)], max_depth=10)

    def test_chain_at_bound_accepted(self):
        """A chain exactly max_depth long is fine."""
        nodes = [UserNode(1)] + [UserNode(i, i - 1) for i in range(2, 6)]

        edges = compute_closure(nodes, max_depth=4)

        assert ClosureEdge(1, 5, 4) in edges

    def test_chain_above_bound_rejected(self):
        """A longer chain fails instead of being truncated."""
        nodes = [UserNode(1)] + [UserNode(i, i - 1) for i in range(2, 7)]

        with pytest.raises(DataIntegrityError, match="maximum of 4"):
            compute_closure(nodes, max_depth=4)


class TestDiffClosure:
    """Test stored vs expected relation comparison."""

    def test_clean(self):
        expected = compute_closure([UserNode(1), UserNode(2, 1)], 10)

        report = diff_closure(list(expected), expected)

        assert report.is_clean

    def test_drift_categories(self):
        """Each kind of drift lands in its own bucket."""
        expected = compute_closure(
            [UserNode(1), UserNode(2, 1), UserNode(3, 2)], 10
        )
        stored = [
            ClosureEdge(1, 1, 0),
            ClosureEdge(2, 2, 0),
            # (3, 3, 0) missing
            ClosureEdge(1, 2, 1),
            ClosureEdge(2, 3, 1),
            ClosureEdge(1, 3, 5),  # wrong depth
            ClosureEdge(3, 1, 1),  # orphan
        ]

        report = diff_closure(stored, expected)

        assert not report.is_clean
        assert report.missing_self_edges == [3]
        assert report.missing == []
        assert report.unexpected == [ClosureEdge(3, 1, 1)]
        assert report.depth_mismatch == [
            (ClosureEdge(1, 3, 5), ClosureEdge(1, 3, 2))
        ]
