"""
Domain grouping of a navigation tree.

Walks the tree once, resolves every page to a domain key and partitions
the pages into DomainGroups. Results are freshly allocated on every call;
the input tree is never modified.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import networkx as nx

from ..config import GroupingConfig, ResolverConfig
from .domains import generate_domain_color, resolve_domain

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


def node_field(node: Mapping, *names, default=None):
    """First present field among camelCase/snake_case spellings"""
    for name in names:
        if name in node and node[name] is not None:
            return node[name]
    return default


@dataclass
class VisitMetrics:
    """How often and for how long a page was looked at"""
    visit_count: int = 1
    total_time_spent: float = 0.0  # ms
    average_time_spent: float = 0.0
    first_visit: Optional[float] = None
    last_visit: Optional[float] = None
    visit_frequency: float = 0.0  # visits per day

    @classmethod
    def from_lifetime(cls, created_at: Optional[float], closed_at: Optional[float]) -> "VisitMetrics":
        """One visit lasting from tab creation until it was closed"""
        spent = 0.0
        if created_at is not None and closed_at is not None and closed_at >= created_at:
            spent = float(closed_at - created_at)
        return cls(
            total_time_spent=spent,
            average_time_spent=spent,
            first_visit=created_at,
            last_visit=created_at,
        )


@dataclass
class NodeConnections:
    """Page-level links touching one node, filled by update_node_connections"""
    incoming: List = field(default_factory=list)
    outgoing: List = field(default_factory=list)
    intra_domain: List = field(default_factory=list)
    inter_domain: List = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.incoming) + len(self.outgoing)


@dataclass
class EnhancedNode:
    """A navigation node decorated for the cluster view"""
    id: str
    url: str
    title: str
    created_at: Optional[float]
    closed_at: Optional[float]
    domain: str
    color: str
    depth: int = 0
    path: Tuple = ()
    parent_id: Optional[str] = None
    parent_domain: Optional[str] = None
    child_ids: List[str] = field(default_factory=list)
    child_domains: List[str] = field(default_factory=list)
    sibling_ids: List[str] = field(default_factory=list)
    cluster_id: Optional[int] = None
    visits: VisitMetrics = field(default_factory=VisitMetrics)
    connections: NodeConnections = field(default_factory=NodeConnections)
    # Simulation state, written back from the node arena
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    fx: Optional[float] = None
    fy: Optional[float] = None
    source: Optional[Mapping] = field(default=None, repr=False, compare=False)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_leaf(self) -> bool:
        return not self.child_ids

    @property
    def pinned(self) -> Optional[Tuple[float, float]]:
        if self.fx is None or self.fy is None:
            return None
        return (self.fx, self.fy)

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)


@dataclass
class DomainStats:
    count: int = 0
    earliest_visit: Optional[float] = None
    latest_visit: Optional[float] = None

    def record(self, created_at: Optional[float]):
        self.count += 1
        if created_at is None:
            return
        if self.earliest_visit is None or created_at < self.earliest_visit:
            self.earliest_visit = created_at
        if self.latest_visit is None or created_at > self.latest_visit:
            self.latest_visit = created_at


@dataclass
class DomainGroup:
    """All pages sharing one domain key"""
    domain: str
    color: str
    nodes: List[EnhancedNode] = field(default_factory=list)
    stats: DomainStats = field(default_factory=DomainStats)

    def __len__(self):
        return len(self.nodes)

    def __repr__(self):
        return f"DomainGroup({self.domain!r}, nodes={len(self.nodes)})"


@dataclass
class DomainGraph:
    """Output of build_domain_groups"""
    domain_groups: Dict[str, DomainGroup]
    node_index: Dict[str, EnhancedNode]
    skipped: int = 0  # malformed or duplicate nodes left out, with their subtrees

    @property
    def total_nodes(self) -> int:
        return sum(len(group.nodes) for group in self.domain_groups.values())

    def group_of(self, node_id) -> Optional[DomainGroup]:
        node = self.node_index.get(node_id)
        if node is None:
            return None
        return self.domain_groups.get(node.domain)


def iter_roots(tree) -> List[Any]:
    """Root nodes of a tree given as mapping (root id -> node) or sequence"""
    if isinstance(tree, Mapping):
        return list(tree.values())
    if isinstance(tree, (list, tuple)):
        return list(tree)
    return []


def _is_well_formed(node) -> bool:
    return isinstance(node, Mapping) and isinstance(node.get("url"), str) and bool(node.get("url"))


def _node_id(node: Mapping, path: Tuple) -> str:
    node_id = node.get("id")
    if node_id is None:
        return "/".join(map(str, path))
    return node_id


def walk_tree(tree) -> Iterator[Tuple[Mapping, Optional[Mapping], int, Tuple]]:
    """
    Depth-first, pre-order walk over every root and its descendants.

    Yields (node, parent, depth, path) for well-formed nodes. A malformed
    node, or one whose id was already visited, is logged and yielded as
    None; its subtree is skipped while its siblings are still visited.
    Skipping repeats also ends the walk over trees that refer back to
    themselves.
    """
    stack = []
    for root in reversed(iter_roots(tree)):
        root_key = root.get("id") if isinstance(root, Mapping) else None
        stack.append((root, None, 0, (root_key,)))

    seen_ids = set()
    seen_objects = set()
    while stack:
        node, parent, depth, path = stack.pop()
        if not _is_well_formed(node):
            logger.warning("Skipping malformed navigation node at %s", "/".join(map(str, path)))
            yield None, parent, depth, path
            continue

        node_id = _node_id(node, path)
        if node_id in seen_ids or id(node) in seen_objects:
            logger.warning("Duplicate navigation node id %r, keeping the first and skipping its subtree", node_id)
            yield None, parent, depth, path
            continue
        seen_ids.add(node_id)
        seen_objects.add(id(node))

        yield node, parent, depth, path

        children = node.get("children") or []
        if not isinstance(children, (list, tuple)):
            logger.warning("Ignoring non-list children of node %r", node_id)
            continue
        for index in range(len(children) - 1, -1, -1):
            stack.append((children[index], node, depth + 1, path + ("children", index)))


def calculate_visit_metrics(node: EnhancedNode, visit_history) -> VisitMetrics:
    """
    Update a node's visit metrics from recorded visits.

    Records are mappings with nodeId, timeSpent (ms) and timestamp;
    records for other nodes are ignored. Without a matching record the
    metrics derived from the node's own lifetime are kept.
    """
    visits = [
        visit for visit in visit_history
        if isinstance(visit, Mapping) and node_field(visit, "nodeId", "node_id") == node.id
    ]
    metrics = node.visits
    if not visits:
        return metrics

    metrics.visit_count = len(visits)
    metrics.total_time_spent = float(sum(node_field(v, "timeSpent", "time_spent", default=0) for v in visits))
    metrics.average_time_spent = metrics.total_time_spent / metrics.visit_count

    timestamps = sorted(v["timestamp"] for v in visits if v.get("timestamp") is not None)
    if timestamps:
        metrics.first_visit = timestamps[0]
        metrics.last_visit = timestamps[-1]
        days = max(1.0, (timestamps[-1] - timestamps[0]) / DAY_MS)
        metrics.visit_frequency = metrics.visit_count / days
    return metrics


def build_domain_groups(
    tree,
    config: Optional[GroupingConfig] = None,
    resolver: Optional[ResolverConfig] = None,
    visit_history=None,
) -> DomainGraph:
    """
    Partition every node of a navigation tree into domain groups.

    Args:
        tree: Mapping of root id -> navigation node (or a list of roots).
              Nodes are mappings with id, url, title, createdAt, closedAt
              and children.
        config: Grouping options (min_cluster_size)
        resolver: Domain resolution options
        visit_history: Optional visit records (nodeId, timeSpent, timestamp)
                       refining each node's visit metrics

    Returns:
        DomainGraph with domain -> DomainGroup (in first-encounter order)
        and node id -> EnhancedNode
    """
    config = config or GroupingConfig()
    resolver = resolver or ResolverConfig()

    domain_groups: Dict[str, DomainGroup] = {}
    node_index: Dict[str, EnhancedNode] = {}
    ids_by_object: Dict[int, str] = {}
    skipped = 0

    visits_by_node: Dict[str, List[Mapping]] = {}
    for visit in visit_history or ():
        if isinstance(visit, Mapping):
            visits_by_node.setdefault(node_field(visit, "nodeId", "node_id"), []).append(visit)

    for raw, parent, depth, path in walk_tree(tree):
        if raw is None:
            skipped += 1
            continue

        node_id = _node_id(raw, path)
        domain = resolve_domain(raw["url"], resolver)
        group = domain_groups.get(domain)
        if group is None:
            group = DomainGroup(domain=domain, color=generate_domain_color(domain))
            domain_groups[domain] = group

        created_at = node_field(raw, "createdAt", "created_at")
        closed_at = node_field(raw, "closedAt", "closed_at")
        parent_id = ids_by_object.get(id(parent)) if parent is not None else None
        enhanced = EnhancedNode(
            id=node_id,
            url=raw["url"],
            title=node_field(raw, "title", default=""),
            created_at=created_at,
            closed_at=closed_at,
            domain=domain,
            color=group.color,
            depth=depth,
            path=path,
            parent_id=parent_id,
            visits=VisitMetrics.from_lifetime(created_at, closed_at),
            source=raw,
        )
        if node_id in visits_by_node:
            calculate_visit_metrics(enhanced, visits_by_node[node_id])
        if parent_id is not None:
            parent_node = node_index[parent_id]
            enhanced.parent_domain = parent_node.domain
            parent_node.child_ids.append(node_id)
            parent_node.child_domains.append(domain)

        ids_by_object[id(raw)] = node_id
        node_index[node_id] = enhanced
        group.nodes.append(enhanced)
        group.stats.record(created_at)

    if config.min_cluster_size > 1:
        kept = {}
        for domain, group in domain_groups.items():
            if len(group.nodes) >= config.min_cluster_size:
                kept[domain] = group
            else:
                for node in group.nodes:
                    del node_index[node.id]
        domain_groups = kept

    siblings: Dict[Optional[str], List[str]] = {}
    for node in node_index.values():
        siblings.setdefault(node.parent_id, []).append(node.id)
    for node in node_index.values():
        node.sibling_ids = [other for other in siblings[node.parent_id] if other != node.id]

    for cluster_id, group in enumerate(domain_groups.values()):
        for node in group.nodes:
            node.cluster_id = cluster_id

    logger.debug(
        "Grouped %d nodes into %d domains (%d skipped)",
        len(node_index), len(domain_groups), skipped,
    )
    return DomainGraph(domain_groups=domain_groups, node_index=node_index, skipped=skipped)


def build_hierarchy_graph(tree, resolver: Optional[ResolverConfig] = None) -> nx.DiGraph:
    """
    The raw navigation hierarchy as a directed graph.

    Edges point from the opening page to the page it opened. Node
    attributes: url, title, created_at, closed_at, domain, depth.
    """
    resolver = resolver or ResolverConfig()
    graph = nx.DiGraph()
    ids_by_object = {}

    for raw, parent, depth, path in walk_tree(tree):
        if raw is None:
            continue
        node_id = _node_id(raw, path)
        graph.add_node(
            node_id,
            url=raw["url"],
            title=node_field(raw, "title", default=""),
            created_at=node_field(raw, "createdAt", "created_at"),
            closed_at=node_field(raw, "closedAt", "closed_at"),
            domain=resolve_domain(raw["url"], resolver),
            depth=depth,
        )
        ids_by_object[id(raw)] = node_id
        if parent is not None and id(parent) in ids_by_object:
            graph.add_edge(ids_by_object[id(parent)], node_id)

    return graph
