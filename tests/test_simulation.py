"""Tests for the force simulation stepper."""

import math

import pytest

from tabcluster.graph.cluster_force import ClusterForce
from tabcluster.graph.node_arena import NodeArena
from tabcluster.graph.simulation import (ForceSimulation, center_force, collision_force, link_force,
                                         many_body_force)


@pytest.fixture
def arena():
    arena = NodeArena(["a", "b"], [0, 0], ["x.com"])
    arena.set_position("a", 0, 0)
    arena.set_position("b", 100, 0)
    return arena


def _gap(arena):
    (ax, ay), (bx, by) = arena.position("a"), arena.position("b")
    return math.hypot(bx - ax, by - ay)


class TestStepper:

    def test_alpha_cools(self, arena):
        simulation = ForceSimulation(arena)
        simulation.tick()
        assert simulation.alpha == pytest.approx(1 - 0.0228)
        assert simulation.tick_count == 1

    def test_ticked_signal(self, arena):
        ticks = []
        simulation = ForceSimulation(arena)
        simulation.ticked.connect(lambda: ticks.append(simulation.tick_count))
        simulation.tick(3)
        assert ticks == [3]

    def test_named_forces(self, arena):
        simulation = ForceSimulation(arena)
        force = ClusterForce(arena)
        simulation.set_force("cluster", force)
        assert simulation.force("cluster") is force
        simulation.set_force("cluster", None)
        assert simulation.force("cluster") is None

    def test_cluster_force_converges(self, arena):
        simulation = ForceSimulation(arena).set_force("cluster", ClusterForce(arena, 0.1))
        before = _gap(arena)
        simulation.tick(50)
        assert _gap(arena) < before

    def test_pinned_node_stays(self, arena):
        arena.pin("a", 0, 0)
        simulation = ForceSimulation(arena).set_force("cluster", ClusterForce(arena, 0.5))
        simulation.tick(20)
        assert arena.position("a") == (0.0, 0.0)
        assert arena.position("b")[0] < 100

    def test_restart(self, arena):
        simulation = ForceSimulation(arena)
        simulation.tick(10)
        simulation.restart(0.3)
        assert simulation.alpha == 0.3


class TestForces:

    def test_charge_repels(self, arena):
        many_body_force(arena, -300)(1.0)
        assert arena.vx[0] < 0 < arena.vx[1]

    def test_link_pulls_long_links_together(self, arena):
        link_force(arena, [("a", "b", 1.0), ("a", "missing", 1.0)], strength=0.5, distance=50)(1.0)
        assert arena.vx[0] > 0 > arena.vx[1]

    def test_center_moves_mean(self, arena):
        center_force(arena, 0, 0, strength=1.0)(1.0)
        assert arena.x.mean() == pytest.approx(0)

    def test_collision_separates_overlaps(self):
        arena = NodeArena(["a", "b"], [0, 0], ["x.com"])
        arena.set_position("b", 10, 0)
        collision_force(arena, radius=30)(1.0)
        assert arena.vx[0] < 0 < arena.vx[1]
