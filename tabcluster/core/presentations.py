"""
The two presentations a ViewModeController switches between.

Both are layout models: they own positions, camera and selection, and
leave the actual drawing to whatever widget renders them. Each one is
built fresh from a GraphManager and torn down with destroy().
"""

import logging
import random
from dataclasses import dataclass
from typing import Dict, List, Set, Tuple

from PyQt5.QtCore import QTimer

from ..config import VisualizationConfig, snake_case
from ..graph.boundaries import BoundaryEngine
from ..graph.cluster_force import ClusterForce
from ..graph.node_arena import NodeArena
from ..graph.simulation import (ForceSimulation, center_force, collision_force,
                                link_force, many_body_force)

logger = logging.getLogger(__name__)


@dataclass
class Camera:
    """Pan/zoom transform of a presentation"""
    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0

    def copy(self) -> "Camera":
        return Camera(self.x, self.y, self.scale)


class Presentation:
    """Shared camera/selection handling"""

    mode = None

    def __init__(self, container, manager, config):
        self.container = container
        self.manager = manager
        self.config = config
        self.camera = Camera()
        self.selection: Set[str] = set()
        self.opacity = 1.0
        self.fade_target = None
        self.scheduler = None  # callable(delay_ms, callback); QTimer when unset
        self.destroyed = False

    def set_camera(self, camera: Camera):
        self.camera = camera.copy()

    def node_ids(self) -> Set[str]:
        raise NotImplementedError

    def restore_selection(self, node_ids):
        """Select the given nodes that exist in this presentation"""
        self.selection = set(node_ids) & self.node_ids()

    def update_options(self, **changes):
        """Apply changed options to this presentation's copy of the config"""
        self.config = self.config.replace(**changes)

    def _fade(self, target: float, duration_ms: float, done):
        # Renderers interpolate from opacity to fade_target over the duration
        self.fade_target = target
        schedule = self.scheduler or (lambda ms, cb: QTimer.singleShot(int(ms), cb))

        def finish():
            self.opacity = target
            self.fade_target = None
            if done is not None:
                done()

        schedule(duration_ms, finish)

    def fade_out(self, duration_ms: float, done=None):
        self._fade(0.0, duration_ms, done)

    def fade_in(self, duration_ms: float, done=None):
        self._fade(1.0, duration_ms, done)

    def destroy(self):
        if self.container is not None and hasattr(self.container, "clear"):
            self.container.clear()
        self.selection = set()
        self.destroyed = True


class HierarchyPresentation(Presentation):
    """Layered tree layout of the raw navigation hierarchy"""

    mode = "hierarchy"

    def __init__(self, container, manager, config, node_spacing=60.0, level_spacing=120.0, margin=50.0):
        super().__init__(container, manager, config)
        self.node_spacing = node_spacing
        self.level_spacing = level_spacing
        self.margin = margin
        self.positions: Dict[str, Tuple[float, float]] = {}
        self.links: List[Tuple[str, str]] = []
        self.layout()

    def node_ids(self) -> Set[str]:
        return set(self.positions)

    def layout(self):
        """
        Place nodes top-down: leaves on consecutive slots, each parent
        centred above its first and last child.
        """
        graph = self.manager.get_hierarchy()
        slots: Dict[str, float] = {}
        next_leaf = 0

        roots = [n for n in graph.nodes if graph.in_degree(n) == 0]
        for root in roots:
            stack = [(root, False)]
            while stack:
                node, expanded = stack.pop()
                children = list(graph.successors(node))
                if not children:
                    slots[node] = float(next_leaf)
                    next_leaf += 1
                elif expanded:
                    slots[node] = (slots[children[0]] + slots[children[-1]]) / 2.0
                else:
                    stack.append((node, True))
                    for child in reversed(children):
                        stack.append((child, False))

        self.positions = {
            node: (
                self.margin + slot * self.node_spacing,
                self.margin + graph.nodes[node]["depth"] * self.level_spacing,
            )
            for node, slot in slots.items()
        }
        self.links = list(graph.edges())

    def update_data(self, manager):
        self.manager = manager
        self.layout()
        self.selection &= self.node_ids()

    def destroy(self):
        super().destroy()
        self.positions = {}
        self.links = []


class ClusterPresentation(Presentation):
    """Force-directed layout with nodes pulled toward their domain"""

    mode = "cluster"

    def __init__(self, container, manager, config, rng=None, autostart=False):
        super().__init__(container, manager, config)
        self.rng = rng or random.Random()
        self.autostart = autostart
        self.boundary_engine = BoundaryEngine(config.boundaries)
        self.show_domain_boundaries = config.force.show_domain_boundaries
        self.boundaries = []
        self.arena = None
        self.simulation = None
        self.cluster_force = None
        self.links: List[Tuple[str, str, float]] = []
        self._build()

    def node_ids(self) -> Set[str]:
        return set(self.arena.node_ids) if self.arena is not None else set()

    def _build(self):
        force_config = self.config.force
        domain_graph = self.manager.domain_graph

        # Node positions are not carried over between sessions
        self.arena = NodeArena.from_domain_graph(
            domain_graph, force_config.width, force_config.height, self.rng
        )

        self.links = [(link.source, link.target, link.strength) for link in self.manager.node_links]

        self.cluster_force = ClusterForce(self.arena, force_config.cluster_strength)
        simulation = ForceSimulation(
            self.arena,
            velocity_decay=force_config.velocity_decay,
            alpha_decay=force_config.alpha_decay,
            alpha_min=force_config.alpha_min,
        )
        simulation.set_force("link", link_force(
            self.arena, self.links, force_config.link_strength, force_config.link_distance))
        simulation.set_force("charge", many_body_force(self.arena, force_config.charge_strength))
        simulation.set_force("center", center_force(
            self.arena, force_config.width / 2, force_config.height / 2, force_config.center_strength))
        simulation.set_force("collision", collision_force(self.arena, force_config.collision_radius))
        simulation.ticked.connect(self._on_tick)
        self.simulation = simulation
        self._sync_cluster_force()
        logger.debug("Cluster view built: %d nodes, %d links", len(self.arena), len(self.links))

        self._on_tick()
        if self.autostart:
            self.simulation.start()

    def _on_tick(self):
        self.arena.sync_to_nodes(self.manager.domain_graph)
        if self.show_domain_boundaries:
            self.boundaries = self.boundary_engine.compute(
                self.manager.domain_graph.domain_groups, self.arena
            )

    def tick(self, iterations=1):
        self.simulation.tick(iterations)

    def update_cluster_strength(self, strength: float):
        """Change the centroid pull; 0 removes the force"""
        self.config = self.config.replace(cluster_strength=strength)
        self.cluster_force.set_strength(strength)
        self._sync_cluster_force()
        self.simulation.restart(0.3)

    def toggle_clustering(self, enabled: bool):
        self.config = self.config.replace(enable_clustering=enabled)
        self._sync_cluster_force()
        self.simulation.restart(0.3)

    def _sync_cluster_force(self):
        active = self.config.force.enable_clustering and self.cluster_force.enabled
        self.simulation.set_force("cluster", self.cluster_force if active else None)

    def toggle_domain_boundaries(self, show: bool):
        self.config = self.config.replace(show_domain_boundaries=show)
        self.show_domain_boundaries = show
        if show:
            self._on_tick()
        else:
            self.boundaries = []

    def pin_node(self, node_id: str, x: float, y: float):
        self.arena.pin(node_id, x, y)

    def unpin_node(self, node_id: str):
        self.arena.unpin(node_id)

    def update_options(self, **changes):
        super().update_options(**changes)
        per_section = VisualizationConfig.route(changes)
        if per_section["boundaries"]:
            self.boundary_engine.update_options(**per_section["boundaries"])
            if self.show_domain_boundaries:
                self._on_tick()

        force = {snake_case(k): v for k, v in per_section["force"].items()}
        if "cluster_strength" in force:
            self.update_cluster_strength(force["cluster_strength"])
        if "enable_clustering" in force:
            self.toggle_clustering(force["enable_clustering"])
        if "show_domain_boundaries" in force:
            self.toggle_domain_boundaries(force["show_domain_boundaries"])

    def update_data(self, manager):
        self.manager = manager
        if self.simulation is not None:
            self.simulation.stop()
            self.simulation.ticked.disconnect(self._on_tick)
        self._build()
        self.selection &= self.node_ids()
        self.simulation.restart(1.0)

    def destroy(self):
        if self.simulation is not None:
            self.simulation.stop()
            self.simulation.ticked.disconnect(self._on_tick)
        super().destroy()
        self.simulation = None
        self.arena = None
        self.boundaries = []


DEFAULT_FACTORIES = {
    "hierarchy": HierarchyPresentation,
    "cluster": ClusterPresentation,
}
