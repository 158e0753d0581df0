"""
Force-directed stepper for the cluster view.

Follows the usual alpha-cooling scheme: every tick alpha decays toward
alpha_target, each registered force adds to node velocities, velocities
are damped and integrated, and pinned nodes are snapped back to their
pin. Custom forces are plain ``force(alpha)`` callables, which is how the
ClusterForce plugs in.
"""

import logging
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from PyQt5.QtCore import QObject, QTimer, pyqtSignal

from .node_arena import NodeArena

logger = logging.getLogger(__name__)

Force = Callable[[float], None]


class ForceSimulation(QObject):
    """Physics stepper over a NodeArena"""

    ticked = pyqtSignal()  # Emitted after every tick
    ended = pyqtSignal()   # Emitted when alpha drops below alpha_min

    def __init__(
        self,
        arena: NodeArena,
        velocity_decay: float = 0.4,
        alpha_decay: float = 0.0228,
        alpha_min: float = 0.001,
    ):
        super().__init__()
        self.arena = arena
        self.velocity_decay = velocity_decay
        self.alpha_decay = alpha_decay
        self.alpha_min = alpha_min
        self.alpha = 1.0
        self.alpha_target = 0.0
        self.forces: Dict[str, Force] = {}
        self.tick_count = 0

        # Driven by a timer only once start() is called
        self.interval_ms = 16  # ~60 FPS
        self._timer = None

    def set_force(self, name: str, force: Optional[Force]):
        """Register a force under a name; None removes it"""
        if force is None:
            self.forces.pop(name, None)
        else:
            self.forces[name] = force
        return self

    def force(self, name: str) -> Optional[Force]:
        return self.forces.get(name)

    def restart(self, alpha: Optional[float] = None):
        """Reheat the simulation (and resume the timer if it was running)"""
        if alpha is not None:
            self.alpha = alpha
        if self._timer is not None and not self._timer.isActive():
            self._timer.start(self.interval_ms)
        return self

    def tick(self, iterations: int = 1):
        """Advance the simulation synchronously"""
        arena = self.arena
        for _ in range(iterations):
            self.alpha += (self.alpha_target - self.alpha) * self.alpha_decay

            for force in list(self.forces.values()):
                force(self.alpha)

            arena.vx *= 1.0 - self.velocity_decay
            arena.vy *= 1.0 - self.velocity_decay
            arena.x += arena.vx
            arena.y += arena.vy

            pinned = arena.pinned_mask()
            if pinned.any():
                arena.x[pinned] = arena.fx[pinned]
                arena.y[pinned] = arena.fy[pinned]
                arena.vx[pinned] = 0.0
                arena.vy[pinned] = 0.0

            self.tick_count += 1

        self.ticked.emit()

    def start(self, interval_ms: Optional[int] = None):
        """Tick on a Qt timer until the simulation cools down"""
        if interval_ms is not None:
            self.interval_ms = interval_ms
        if self._timer is None:
            self._timer = QTimer(self)
            self._timer.timeout.connect(self._on_timer)
        self._timer.start(self.interval_ms)

    def stop(self):
        if self._timer is not None:
            self._timer.stop()

    def _on_timer(self):
        self.tick()
        if self.alpha < self.alpha_min:
            logger.debug("Simulation cooled down after %d ticks", self.tick_count)
            self.stop()
            self.ended.emit()


# --- Standard forces -------------------------------------------------------

def _pairwise(arena: NodeArena):
    dx = arena.x[np.newaxis, :] - arena.x[:, np.newaxis]
    dy = arena.y[np.newaxis, :] - arena.y[:, np.newaxis]
    dist_sq = dx * dx + dy * dy
    np.fill_diagonal(dist_sq, np.inf)
    return dx, dy, dist_sq


def many_body_force(arena: NodeArena, strength: float = -300.0, distance_min: float = 1.0) -> Force:
    """Inverse-distance charge between every pair (negative repels)"""
    min_sq = distance_min * distance_min

    def force(alpha):
        if len(arena) < 2:
            return
        dx, dy, dist_sq = _pairwise(arena)
        dist_sq = np.maximum(dist_sq, min_sq)
        w = strength * alpha / dist_sq
        arena.vx += (dx * w).sum(axis=1)
        arena.vy += (dy * w).sum(axis=1)

    return force


def link_force(
    arena: NodeArena,
    links: List[Tuple[str, str, float]],
    strength: float = 0.3,
    distance: float = 50.0,
) -> Force:
    """
    Springs along links.

    Args:
        links: (source id, target id, weight) triples; links whose
               endpoints are not in the arena are ignored
        strength: Multiplier applied to every link weight
        distance: Rest length
    """
    pairs = [
        (arena.index[s], arena.index[t], w * strength)
        for s, t, w in links
        if s in arena.index and t in arena.index and s != t
    ]

    def force(alpha):
        for i, j, k in pairs:
            dx = arena.x[j] + arena.vx[j] - arena.x[i] - arena.vx[i]
            dy = arena.y[j] + arena.vy[j] - arena.y[i] - arena.vy[i]
            length = float(np.hypot(dx, dy)) or 1e-6
            scale = (length - distance) / length * alpha * k
            dx *= scale
            dy *= scale
            arena.vx[j] -= dx * 0.5
            arena.vy[j] -= dy * 0.5
            arena.vx[i] += dx * 0.5
            arena.vy[i] += dy * 0.5

    return force


def center_force(arena: NodeArena, cx: float, cy: float, strength: float = 0.1) -> Force:
    """Shift all nodes so their mean moves toward (cx, cy)"""

    def force(alpha):
        if len(arena) == 0:
            return
        arena.x -= (arena.x.mean() - cx) * strength
        arena.y -= (arena.y.mean() - cy) * strength

    return force


def collision_force(arena: NodeArena, radius: float = 30.0, strength: float = 1.0) -> Force:
    """Push apart nodes closer than two radii"""
    reach = 2.0 * radius

    def force(alpha):
        if len(arena) < 2:
            return
        dx, dy, dist_sq = _pairwise(arena)
        dist = np.sqrt(dist_sq)
        with np.errstate(invalid="ignore"):
            overlap = np.where(dist < reach, (reach - dist) / np.maximum(dist, 1e-6), 0.0)
        push = overlap * 0.5 * strength
        arena.vx -= (dx * push).sum(axis=1)
        arena.vy -= (dy * push).sum(axis=1)

    return force
