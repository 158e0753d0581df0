"""
Centroid-pull force for the cluster view.

Registered with the physics stepper as a plain ``force(alpha)`` callable.
Every tick it recomputes each domain's live centroid and nudges member
velocities toward it:

    v += (centroid - position) * strength * alpha

Pinned nodes still count toward their centroid and still receive the
velocity change; the stepper enforces the pin by overriding position.
"""

import numpy as np

from .node_arena import NodeArena


class ClusterForce:
    """Pulls each node toward the centroid of its domain group"""

    def __init__(self, arena: NodeArena, strength: float = 0.1):
        self.arena = arena
        self.strength = strength

    def set_strength(self, strength: float):
        """Adjust the pull at runtime; 0 turns the force into a no-op"""
        self.strength = strength

    @property
    def enabled(self) -> bool:
        return self.strength != 0 and len(self.arena) > 0

    def __call__(self, alpha: float):
        if not self.enabled:
            return

        arena = self.arena
        cx, cy, counts = arena.group_centroids()

        grouped = arena.group >= 0
        idx = np.flatnonzero(grouped)
        g = arena.group[idx]
        has_center = counts[g] > 0
        idx = idx[has_center]
        g = g[has_center]

        k = self.strength * alpha
        arena.vx[idx] += (cx[g] - arena.x[idx]) * k
        arena.vy[idx] += (cy[g] - arena.y[idx]) * k
