import logging

from PyQt5.QtCore import QObject, pyqtSignal

from ..config import VisualizationConfig
from ..connection_mapper import build_connections, build_intra_domain_connections, update_node_connections
from .grouping import build_domain_groups, build_hierarchy_graph

logger = logging.getLogger(__name__)


class GraphManager(QObject):
    """Holds the navigation tree and the graphs derived from it"""

    graph_changed = pyqtSignal()  # Emitted after every pipeline run

    def __init__(self, tree=None, config=None, clock=None, visit_history=None):
        super().__init__()
        self.tree = tree or {}
        self.visit_history = visit_history or []
        self.config = config or VisualizationConfig()
        self.clock = clock  # Optional callable returning "now" in epoch ms
        self.domain_graph = None
        self.connections = []
        self.node_links = []
        self.hierarchy = None
        self.rebuild()

    def set_tree(self, tree):
        """Replace the navigation tree and rebuild everything"""
        self.tree = tree or {}
        self.rebuild()

    def set_visit_history(self, visit_history):
        """Replace the visit records and rebuild everything"""
        self.visit_history = visit_history or []
        self.rebuild()

    def set_config(self, config):
        """Replace the configuration and rebuild everything"""
        self.config = config
        self.rebuild()

    def rebuild(self):
        """
        Run grouping and connection mapping from scratch.

        Previous results are replaced, never patched.
        """
        now = self.clock() if self.clock else None
        self.domain_graph = build_domain_groups(
            self.tree, self.config.grouping, self.config.resolver, self.visit_history
        )
        self.connections = build_connections(
            self.domain_graph, self.config.connections, now=now
        )
        self.node_links = update_node_connections(
            self.domain_graph,
            self.connections,
            build_intra_domain_connections(self.domain_graph, max_connections_per_node=0),
        )
        self.hierarchy = build_hierarchy_graph(self.tree, self.config.resolver)
        logger.debug(
            "Pipeline rebuilt: %d domains, %d connections, %d hierarchy nodes",
            len(self.domain_graph.domain_groups),
            len(self.connections),
            self.hierarchy.number_of_nodes(),
        )
        self.graph_changed.emit()

    def get_domain_groups(self):
        return self.domain_graph.domain_groups

    def get_node_data(self, node_id):
        """Get the enhanced node for an id, or None"""
        return self.domain_graph.node_index.get(node_id)

    def get_hierarchy(self):
        """Get the NetworkX hierarchy graph"""
        return self.hierarchy
