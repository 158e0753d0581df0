"""Domain clustering and view-mode switching for browser navigation trees."""

from .config import (BoundaryConfig, ConnectionConfig, ForceConfig, GroupingConfig,
                     ResolverConfig, ViewModeConfig, VisualizationConfig)
from .connection_mapper import (Connection, analyze_connection_patterns, build_connections,
                                build_intra_domain_connections, calculate_connection_strength,
                                filter_connections, update_node_connections)
from .core.view_mode_controller import ViewMode, ViewModeController
from .exceptions import ConfigError, InvalidModeError, TabClusterError
from .graph.boundaries import BoundaryEngine, BoundaryPolygon, convex_hull, create_padded_boundary
from .graph.cluster_force import ClusterForce
from .graph.domains import generate_domain_color, resolve_domain
from .graph.graph_manager import GraphManager
from .graph.grouping import (DomainGraph, DomainGroup, EnhancedNode, VisitMetrics, build_domain_groups,
                             calculate_visit_metrics)
from .graph.node_arena import NodeArena
from .graph.simulation import ForceSimulation

__version__ = "0.1.0"
