"""
Domain-to-domain connection graph for navigation trees.

Every parent -> child navigation whose pages live on different domains
contributes to one directed, weighted Connection between the two domains:
- frequency: how many navigations took that route
- strength: blend of frequency (relative to the source domain's size)
  and recency (linear decay over a 30 day window), clamped to [0, 1]
- bidirectional: whether the reverse route was also observed

The result is a fresh list on every call, sorted by descending strength.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import networkx as nx

from .config import ConnectionConfig
from .graph.grouping import DAY_MS, DomainGraph, DomainGroup, NodeConnections

logger = logging.getLogger(__name__)


def now_ms() -> float:
    return time.time() * 1000.0


@dataclass(frozen=True)
class NavigationEvent:
    """One parent -> child navigation backing a Connection"""
    parent_id: str
    child_id: str
    timestamp: float


@dataclass
class Connection:
    """Directed, weighted edge between two domains"""
    source_domain: str
    target_domain: str
    contributing: List[NavigationEvent] = field(default_factory=list)
    frequency: int = 0
    strength: float = 0.0
    bidirectional: bool = False

    @property
    def key(self) -> Tuple[str, str]:
        return (self.source_domain, self.target_domain)

    @property
    def latest_timestamp(self) -> float:
        return max((event.timestamp or 0 for event in self.contributing), default=0)

    def __repr__(self):
        arrow = "<->" if self.bidirectional else "->"
        return (f"Connection({self.source_domain} {arrow} {self.target_domain}, "
                f"frequency={self.frequency}, strength={self.strength:.3f})")


@dataclass
class ConnectionAnalysis:
    """Descriptive statistics over a connection list"""
    total_connections: int
    bidirectional_connections: int
    strong_connections: int  # strength > 0.7
    weak_connections: int    # strength < 0.3
    hub_domains: List[Tuple[str, int]]   # (domain, outgoing), descending
    sink_domains: List[Tuple[str, int]]  # (domain, incoming), descending
    isolated_domains: List[str]
    connection_matrix: Dict[Tuple[str, str], Connection]


@dataclass
class IntraDomainLink:
    """Node-level link between two pages of the same domain"""
    source: str
    target: str
    domain: str
    strength: float
    kind: str  # 'parent-child' or 'sibling'


@dataclass(frozen=True)
class NodeLink:
    """Page-to-page link as listed on both of its endpoints"""
    source: str
    target: str
    source_domain: str
    target_domain: str
    strength: float

    @property
    def intra_domain(self) -> bool:
        return self.source_domain == self.target_domain


def _accumulate(
    domain_graph: DomainGraph,
    include_intra_domain: bool,
    now: float,
) -> Dict[Tuple[str, str], Connection]:
    """Collect navigation events into connections keyed by domain pair"""
    accumulated: Dict[Tuple[str, str], Connection] = {}
    node_index = domain_graph.node_index

    for group in domain_graph.domain_groups.values():
        for node in group.nodes:
            for child_id in node.child_ids:
                child = node_index.get(child_id)
                if child is None:
                    # Child's group was filtered out
                    continue
                if not include_intra_domain and child.domain == group.domain:
                    continue

                key = (group.domain, child.domain)
                connection = accumulated.get(key)
                if connection is None:
                    connection = Connection(source_domain=group.domain, target_domain=child.domain)
                    accumulated[key] = connection

                timestamp = child.created_at if child.created_at is not None else now
                connection.contributing.append(NavigationEvent(node.id, child.id, timestamp))
                connection.frequency += 1

    return accumulated


def calculate_connection_strength(
    connection: Connection,
    domain_groups: Mapping[str, DomainGroup],
    config: Optional[ConnectionConfig] = None,
    now: Optional[float] = None,
) -> float:
    """
    Score a connection in [0, 1].

    Args:
        connection: Accumulated connection
        domain_groups: Domain groups, used for the source domain's size
        config: Weighting options
        now: Reference time in epoch milliseconds (default: current time)

    Returns:
        frequency_weight * frequency_score + recency_weight * recency_score,
        clamped to [0, 1]. 0 when both terms are disabled.
    """
    config = config or ConnectionConfig()
    now = now_ms() if now is None else now
    strength = 0.0

    if config.weight_by_frequency:
        source_group = domain_groups.get(connection.source_domain)
        source_size = len(source_group.nodes) if source_group else 1
        frequency_score = min(connection.frequency / max(1, source_size), 1.0)
        strength += frequency_score * config.frequency_weight

    if config.weight_by_recency:
        days_since = (now - connection.latest_timestamp) / DAY_MS
        recency_score = max(0.0, 1.0 - days_since / config.recency_window_days)
        strength += recency_score * config.recency_weight

    return max(0.0, min(1.0, strength))


def build_connections(
    domain_graph: DomainGraph,
    config: Optional[ConnectionConfig] = None,
    now: Optional[float] = None,
) -> List[Connection]:
    """
    Build the weighted domain connection graph.

    Args:
        domain_graph: Result of build_domain_groups
        config: Connection options
        now: Reference time in epoch milliseconds (default: current time)

    Returns:
        Connections with strength >= min_connection_strength, sorted by
        descending strength
    """
    config = config or ConnectionConfig()
    now = now_ms() if now is None else now

    accumulated = _accumulate(domain_graph, config.include_intra_domain, now)

    connections = []
    for key, connection in accumulated.items():
        connection.strength = calculate_connection_strength(
            connection, domain_graph.domain_groups, config, now
        )
        # Checked against the full map so traversal order does not matter
        connection.bidirectional = (key[1], key[0]) in accumulated
        if connection.strength >= config.min_connection_strength:
            connections.append(connection)

    connections.sort(key=lambda c: c.strength, reverse=True)
    logger.debug(
        "Built %d domain connections (%d before strength filter)",
        len(connections), len(accumulated),
    )
    return connections


def connections_to_graph(connections: Iterable[Connection], domains: Iterable[str] = ()) -> nx.DiGraph:
    """Weighted directed graph of domains (edge weight = strength)"""
    graph = nx.DiGraph()
    graph.add_nodes_from(domains)
    for connection in connections:
        graph.add_edge(
            connection.source_domain,
            connection.target_domain,
            weight=connection.strength,
            frequency=connection.frequency,
            bidirectional=connection.bidirectional,
        )
    return graph


def analyze_connection_patterns(
    connections: List[Connection],
    domain_groups: Mapping[str, DomainGroup],
) -> ConnectionAnalysis:
    """
    Classify domains as hubs, sinks or isolated.

    A hub has more than 1.5x the mean number of outgoing connections per
    domain, a sink more than 1.5x the mean number of incoming ones. A domain
    with no connection in either direction is isolated.
    """
    graph = connections_to_graph(connections, domain_groups.keys())
    mean = len(connections) / len(domain_groups) if domain_groups else 0.0

    hubs = [(d, n) for d, n in graph.out_degree() if n > 0 and n > mean * 1.5]
    sinks = [(d, n) for d, n in graph.in_degree() if n > 0 and n > mean * 1.5]
    hubs.sort(key=lambda item: item[1], reverse=True)
    sinks.sort(key=lambda item: item[1], reverse=True)

    return ConnectionAnalysis(
        total_connections=len(connections),
        bidirectional_connections=sum(1 for c in connections if c.bidirectional),
        strong_connections=sum(1 for c in connections if c.strength > 0.7),
        weak_connections=sum(1 for c in connections if c.strength < 0.3),
        hub_domains=hubs,
        sink_domains=sinks,
        isolated_domains=[d for d in domain_groups if graph.degree(d) == 0],
        connection_matrix={c.key: c for c in connections},
    )


def filter_connections(
    connections: Iterable[Connection],
    min_strength: float = 0.0,
    max_strength: float = 1.0,
    include_bidirectional: bool = True,
    include_unidirectional: bool = True,
    source_domains: Optional[Iterable[str]] = None,
    target_domains: Optional[Iterable[str]] = None,
    exclude_domains: Optional[Iterable[str]] = None,
) -> List[Connection]:
    """Connections matching every given criterion, order preserved"""
    sources = set(source_domains) if source_domains is not None else None
    targets = set(target_domains) if target_domains is not None else None
    excluded = set(exclude_domains or ())

    result = []
    for connection in connections:
        if not min_strength <= connection.strength <= max_strength:
            continue
        if connection.bidirectional and not include_bidirectional:
            continue
        if not connection.bidirectional and not include_unidirectional:
            continue
        if sources is not None and connection.source_domain not in sources:
            continue
        if targets is not None and connection.target_domain not in targets:
            continue
        if connection.source_domain in excluded or connection.target_domain in excluded:
            continue
        result.append(connection)
    return result


def build_intra_domain_connections(
    domain_graph: DomainGraph,
    max_connections_per_node: int = 10,
    include_siblings: bool = False,
) -> List[IntraDomainLink]:
    """
    Node-level links between pages of the same domain.

    Parent -> child links get strength 1.0, sibling links 0.5. When
    max_connections_per_node > 0, links are kept in order until either
    endpoint reaches the limit.
    """
    node_index = domain_graph.node_index
    links: List[IntraDomainLink] = []

    for group in domain_graph.domain_groups.values():
        domain_links = []
        for node in group.nodes:
            same_domain = [
                node_index[c] for c in node.child_ids
                if c in node_index and node_index[c].domain == group.domain
            ]
            for child in same_domain:
                domain_links.append(IntraDomainLink(node.id, child.id, group.domain, 1.0, "parent-child"))

        if include_siblings:
            for node in group.nodes:
                same_domain = [
                    c for c in node.child_ids
                    if c in node_index and node_index[c].domain == group.domain
                ]
                for i, first in enumerate(same_domain):
                    for second in same_domain[i + 1:]:
                        domain_links.append(IntraDomainLink(first, second, group.domain, 0.5, "sibling"))

        if max_connections_per_node > 0:
            counts: Dict[str, int] = {}
            for link in domain_links:
                if (counts.get(link.source, 0) < max_connections_per_node
                        and counts.get(link.target, 0) < max_connections_per_node):
                    links.append(link)
                    counts[link.source] = counts.get(link.source, 0) + 1
                    counts[link.target] = counts.get(link.target, 0) + 1
        else:
            links.extend(domain_links)

    return links


def update_node_connections(
    domain_graph: DomainGraph,
    connections: Iterable[Connection],
    intra_links: Iterable[IntraDomainLink] = (),
) -> List[NodeLink]:
    """
    Rebuild every node's ``connections`` from page-level links.

    Navigation events behind the given domain connections become
    inter-domain links, intra-domain links are taken as they are. Each
    link is outgoing on its source and incoming on its target, and is
    filed under intra_domain or inter_domain on both. A link between the
    same two pages is only counted once.

    Returns:
        The deduplicated links, connections first
    """
    node_index = domain_graph.node_index
    for node in node_index.values():
        node.connections = NodeConnections()

    candidates = []
    for connection in connections:
        for event in connection.contributing:
            candidates.append(NodeLink(event.parent_id, event.child_id, connection.source_domain,
                                       connection.target_domain, connection.strength))
    for link in intra_links:
        candidates.append(NodeLink(link.source, link.target, link.domain, link.domain, link.strength))

    links = []
    seen = set()
    for link in candidates:
        if (link.source, link.target) in seen:
            continue
        seen.add((link.source, link.target))
        links.append(link)

        source = node_index.get(link.source)
        target = node_index.get(link.target)
        if source is not None:
            source.connections.outgoing.append(link)
        if target is not None:
            target.connections.incoming.append(link)
        for node in (source, target):
            if node is None:
                continue
            if link.intra_domain:
                node.connections.intra_domain.append(link)
            else:
                node.connections.inter_domain.append(link)

    return links
