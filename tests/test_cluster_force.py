"""Tests for the node arena and the centroid-pull force."""

import random

import numpy as np
import pytest

from tabcluster.graph.cluster_force import ClusterForce
from tabcluster.graph.grouping import build_domain_groups
from tabcluster.graph.node_arena import NodeArena


@pytest.fixture
def pair_arena():
    arena = NodeArena(["a", "b", "c"], [0, 0, -1], ["x.com"])
    arena.set_position("a", 0, 0)
    arena.set_position("b", 10, 0)
    arena.set_position("c", 50, 50)
    return arena


class TestNodeArena:

    def test_from_domain_graph(self, sample_tree):
        domain_graph = build_domain_groups(sample_tree)
        arena = NodeArena.from_domain_graph(domain_graph, 100, 50, random.Random(7))

        assert len(arena) == 6
        assert arena.group_names == list(domain_graph.domain_groups)
        assert list(arena.group) == [0, 0, 1, 2, 3, 4]
        assert np.all((arena.x >= 0) & (arena.x <= 100))
        assert np.all((arena.y >= 0) & (arena.y <= 50))

    def test_centroids(self, pair_arena):
        cx, cy, counts = pair_arena.group_centroids()
        assert cx[0] == pytest.approx(5)
        assert cy[0] == pytest.approx(0)
        assert counts[0] == 2

    def test_empty_group_centroid_is_nan(self):
        arena = NodeArena(["a"], [0], ["x.com", "y.com"])
        cx, _, counts = arena.group_centroids()
        assert counts[1] == 0
        assert np.isnan(cx[1])

    def test_pin_and_unpin(self, pair_arena):
        pair_arena.pin("a", 3, 4)
        assert list(pair_arena.pinned_mask()) == [True, False, False]
        pair_arena.unpin("a")
        assert not pair_arena.pinned_mask().any()

    def test_sync_to_nodes(self, sample_tree):
        domain_graph = build_domain_groups(sample_tree)
        arena = NodeArena.from_domain_graph(domain_graph, rng=random.Random(1))
        arena.set_position("3-1640995320000", 12.5, 7.5)
        arena.pin("3-1640995320000", 12.5, 7.5)
        arena.sync_to_nodes(domain_graph)

        node = domain_graph.node_index["3-1640995320000"]
        assert node.position == (12.5, 7.5)
        assert node.pinned == (12.5, 7.5)
        assert domain_graph.node_index["1-1640995200000"].pinned is None


class TestClusterForce:

    def test_pulls_toward_centroid(self, pair_arena):
        ClusterForce(pair_arena, strength=0.1)(alpha=1.0)
        assert pair_arena.vx[0] == pytest.approx(0.5)
        assert pair_arena.vx[1] == pytest.approx(-0.5)
        assert pair_arena.vy[0] == pytest.approx(0)

    def test_scaled_by_alpha(self, pair_arena):
        ClusterForce(pair_arena, strength=0.1)(alpha=0.5)
        assert pair_arena.vx[0] == pytest.approx(0.25)

    def test_ungrouped_node_untouched(self, pair_arena):
        ClusterForce(pair_arena, strength=0.1)(alpha=1.0)
        assert pair_arena.vx[2] == 0
        assert pair_arena.vy[2] == 0

    def test_zero_strength_is_noop(self, pair_arena):
        force = ClusterForce(pair_arena, strength=0.1)
        force.set_strength(0)
        assert not force.enabled
        force(alpha=1.0)
        assert not pair_arena.vx.any()

    def test_pinned_nodes_count_toward_centroid(self, pair_arena):
        pair_arena.pin("b", 10, 0)
        ClusterForce(pair_arena, strength=0.1)(alpha=1.0)
        assert pair_arena.vx[0] == pytest.approx(0.5)
        assert pair_arena.vx[1] == pytest.approx(-0.5)

    def test_empty_arena(self):
        arena = NodeArena([], [], [])
        force = ClusterForce(arena)
        assert not force.enabled
        force(alpha=1.0)
