"""
Arena-indexed node state for the cluster view.

Positions, velocities and pins live in flat numpy buffers indexed by a
stable node index. The cluster force, the simulation stepper and the
boundary engine all work on indices into these buffers, never on the
EnhancedNode objects themselves.
"""

import random
from typing import Dict, List, Optional, Tuple

import numpy as np

from .grouping import DomainGraph


class NodeArena:
    """Flat simulation buffers for one cluster-view session"""

    def __init__(self, node_ids: List[str], groups: List[int], group_names: List[str]):
        n = len(node_ids)
        self.node_ids = list(node_ids)
        self.index: Dict[str, int] = {node_id: i for i, node_id in enumerate(self.node_ids)}
        self.group_names = list(group_names)
        self.group = np.asarray(groups, dtype=np.int64).reshape(n)  # -1 = no group
        self.x = np.zeros(n)
        self.y = np.zeros(n)
        self.vx = np.zeros(n)
        self.vy = np.zeros(n)
        self.fx = np.full(n, np.nan)  # NaN = not pinned
        self.fy = np.full(n, np.nan)

    def __len__(self):
        return len(self.node_ids)

    @classmethod
    def from_domain_graph(
        cls,
        domain_graph: DomainGraph,
        width: float = 960.0,
        height: float = 600.0,
        rng: Optional[random.Random] = None,
    ) -> "NodeArena":
        """
        Build an arena for every node of a domain graph.

        Nodes are indexed in group order. Positions start uniformly random
        inside the width x height canvas.
        """
        rng = rng or random.Random()
        node_ids = []
        groups = []
        group_names = list(domain_graph.domain_groups.keys())
        for group_index, group in enumerate(domain_graph.domain_groups.values()):
            for node in group.nodes:
                node_ids.append(node.id)
                groups.append(group_index)

        arena = cls(node_ids, groups, group_names)
        for i in range(len(arena)):
            arena.x[i] = rng.uniform(0, width)
            arena.y[i] = rng.uniform(0, height)
        return arena

    def set_position(self, node_id: str, x: float, y: float):
        i = self.index[node_id]
        self.x[i] = x
        self.y[i] = y

    def position(self, node_id: str) -> Tuple[float, float]:
        i = self.index[node_id]
        return float(self.x[i]), float(self.y[i])

    def pin(self, node_id: str, x: float, y: float):
        """Hold a node at (x, y), e.g. while the user drags it"""
        i = self.index[node_id]
        self.fx[i] = x
        self.fy[i] = y

    def unpin(self, node_id: str):
        i = self.index[node_id]
        self.fx[i] = np.nan
        self.fy[i] = np.nan

    def pinned_mask(self) -> np.ndarray:
        return ~(np.isnan(self.fx) | np.isnan(self.fy))

    def members(self, group_index: int) -> np.ndarray:
        """Arena indices of a group's nodes"""
        return np.flatnonzero(self.group == group_index)

    def positions_for_group(self, group_index: int) -> List[Tuple[float, float]]:
        members = self.members(group_index)
        return list(zip(self.x[members].tolist(), self.y[members].tolist()))

    def group_centroids(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Mean position of every group, in O(nodes).

        Returns:
            (cx, cy, counts) arrays indexed by group; groups without
            members have count 0 and a NaN centroid
        """
        n_groups = len(self.group_names)
        grouped = self.group >= 0
        g = self.group[grouped]
        counts = np.bincount(g, minlength=n_groups).astype(float)
        sum_x = np.bincount(g, weights=self.x[grouped], minlength=n_groups)
        sum_y = np.bincount(g, weights=self.y[grouped], minlength=n_groups)
        with np.errstate(invalid="ignore", divide="ignore"):
            cx = np.where(counts > 0, sum_x / counts, np.nan)
            cy = np.where(counts > 0, sum_y / counts, np.nan)
        return cx, cy, counts

    def sync_to_nodes(self, domain_graph: DomainGraph):
        """Copy arena state onto the EnhancedNodes for the renderer"""
        for node_id, i in self.index.items():
            node = domain_graph.node_index.get(node_id)
            if node is None:
                continue
            node.x = float(self.x[i])
            node.y = float(self.y[i])
            node.vx = float(self.vx[i])
            node.vy = float(self.vy[i])
            node.fx = None if np.isnan(self.fx[i]) else float(self.fx[i])
            node.fy = None if np.isnan(self.fy[i]) else float(self.fy[i])
