"""
Cluster outlines for the cluster view.

For each domain: convex hull of the member positions (Graham scan), every
hull vertex pushed outward from the hull centroid by ``padding``, then a
closed cardinal spline through the padded vertices so the outline is not
faceted. Single-node domains get a regular polygon approximating a circle.
"""

import math
from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence, Tuple

from PyQt5.QtCore import QPointF
from PyQt5.QtGui import QPainterPath

from ..config import BoundaryConfig
from .node_arena import NodeArena

Point = Tuple[float, float]
BezierSegment = Tuple[Point, Point, Point]  # control 1, control 2, end point


def cross_product(o: Point, a: Point, b: Point) -> float:
    """Z component of (a - o) x (b - o); positive for a left turn"""
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def centroid(points: Sequence[Point]) -> Point:
    """Arithmetic mean of the points ((0, 0) when empty)"""
    if not points:
        return (0.0, 0.0)
    return (
        sum(p[0] for p in points) / len(points),
        sum(p[1] for p in points) / len(points),
    )


def convex_hull(points: Sequence[Point]) -> List[Point]:
    """
    Graham scan.

    Args:
        points: (x, y) points

    Returns:
        Hull vertices in counter-clockwise order starting from the lowest
        point (smallest x on ties). Inputs with fewer than 3 points are
        returned unchanged.
    """
    points = [(float(x), float(y)) for x, y in points]
    if len(points) < 3:
        return points

    start = 0
    for i in range(1, len(points)):
        if points[i][1] < points[start][1] or (
            points[i][1] == points[start][1] and points[i][0] < points[start][0]
        ):
            start = i

    pivot = points[start]
    rest = points[:start] + points[start + 1:]
    rest.sort(key=lambda p: (
        math.atan2(p[1] - pivot[1], p[0] - pivot[0]),
        math.hypot(p[0] - pivot[0], p[1] - pivot[1]),
    ))

    hull = [pivot]
    for point in rest:
        # Drop anything that is not a strict left turn
        while len(hull) > 1 and cross_product(hull[-2], hull[-1], point) <= 0:
            hull.pop()
        hull.append(point)
    return hull


def circle_points(center: Point, radius: float, segments: int = 12) -> List[Point]:
    """Regular polygon approximating a circle"""
    cx, cy = center
    return [
        (cx + math.cos(2 * math.pi * i / segments) * radius,
         cy + math.sin(2 * math.pi * i / segments) * radius)
        for i in range(segments)
    ]


def _capsule_points(a: Point, b: Point, radius: float, segments: int) -> List[Point]:
    """Stadium around the segment a-b (half circle at each end)"""
    angle = math.atan2(b[1] - a[1], b[0] - a[0])
    half = max(2, segments // 2)
    outline = []
    for end, offset in ((b, -math.pi / 2), (a, math.pi / 2)):
        for i in range(half + 1):
            theta = angle + offset + math.pi * i / half
            outline.append((end[0] + math.cos(theta) * radius, end[1] + math.sin(theta) * radius))
    return outline


def create_padded_boundary(
    points: Sequence[Point],
    padding: float = 25.0,
    segments: int = 12,
) -> List[Point]:
    """
    Padded outline around a set of points.

    Args:
        points: Member positions of one domain
        padding: Distance each hull vertex is pushed away from the hull
                 centroid
        segments: Vertex count of the circle used for a single point

    Returns:
        Outline vertices: [] for no points, a circle of radius ``padding``
        for a single point, otherwise the padded convex hull. Collinear
        inputs get a stadium shape so there are always at least 3 vertices.
    """
    points = [(float(x), float(y)) for x, y in points]
    if not points:
        return []
    if len(points) == 1:
        return circle_points(points[0], padding, segments)

    hull = convex_hull(points)
    if len(hull) < 3:
        distinct = sorted(set(points))
        if len(distinct) == 1:
            return circle_points(distinct[0], padding, segments)
        return _capsule_points(distinct[0], distinct[-1], padding, segments)

    cx, cy = centroid(hull)
    padded = []
    for x, y in hull:
        dx = x - cx
        dy = y - cy
        distance = math.hypot(dx, dy)
        if distance == 0:
            padded.append((x + padding, y))
            continue
        factor = (distance + padding) / distance
        padded.append((cx + dx * factor, cy + dy * factor))
    return padded


def cardinal_closed_segments(points: Sequence[Point], tension: float = 0.3) -> List[BezierSegment]:
    """
    Cubic Bezier segments of a closed cardinal spline through the points.

    Segment i runs from points[i] to points[i + 1] (wrapping around).
    Tension 0 gives a Catmull-Rom-like curve, 1 gives straight edges.
    """
    n = len(points)
    if n < 3:
        return []

    k = (1.0 - tension) / 6.0
    segments = []
    for i in range(n):
        p0 = points[(i - 1) % n]
        p1 = points[i]
        p2 = points[(i + 1) % n]
        p3 = points[(i + 2) % n]
        c1 = (p1[0] + k * (p2[0] - p0[0]), p1[1] + k * (p2[1] - p0[1]))
        c2 = (p2[0] - k * (p3[0] - p1[0]), p2[1] - k * (p3[1] - p1[1]))
        segments.append((c1, c2, p2))
    return segments


def _bezier_point(p0: Point, c1: Point, c2: Point, p1: Point, t: float) -> Point:
    u = 1.0 - t
    a, b, c, d = u * u * u, 3 * u * u * t, 3 * u * t * t, t * t * t
    return (
        a * p0[0] + b * c1[0] + c * c2[0] + d * p1[0],
        a * p0[1] + b * c1[1] + c * c2[1] + d * p1[1],
    )


def sample_smooth_boundary(points: Sequence[Point], tension: float = 0.3, steps: int = 8) -> List[Point]:
    """Polyline approximation of the closed spline, ``steps`` per segment"""
    segments = cardinal_closed_segments(points, tension)
    if not segments:
        return list(points)
    sampled = []
    start = points[0]
    for c1, c2, end in segments:
        for s in range(steps):
            sampled.append(_bezier_point(start, c1, c2, end, s / steps))
        start = end
    return sampled


def _fmt(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def polygon_path(points: Sequence[Point]) -> str:
    """Straight-edged closed SVG path"""
    if not points:
        return ""
    parts = [f"M{_fmt(points[0][0])},{_fmt(points[0][1])}"]
    parts.extend(f"L{_fmt(x)},{_fmt(y)}" for x, y in points[1:])
    parts.append("Z")
    return "".join(parts)


def smooth_path(points: Sequence[Point], tension: float = 0.3) -> str:
    """Closed cardinal spline as SVG path data"""
    if len(points) < 3:
        return ""
    parts = [f"M{_fmt(points[0][0])},{_fmt(points[0][1])}"]
    for c1, c2, end in cardinal_closed_segments(points, tension):
        parts.append(
            f"C{_fmt(c1[0])},{_fmt(c1[1])},{_fmt(c2[0])},{_fmt(c2[1])},{_fmt(end[0])},{_fmt(end[1])}"
        )
    parts.append("Z")
    return "".join(parts)


@dataclass
class BoundaryPolygon:
    """Outline of one domain cluster for the current tick"""
    domain: str
    points: List[Point]
    centroid: Point
    smooth: bool = True
    tension: float = 0.3
    color: Optional[str] = None
    node_count: int = 0

    def segments(self) -> List[BezierSegment]:
        return cardinal_closed_segments(self.points, self.tension) if self.smooth else []

    def path_data(self) -> str:
        """SVG path: spline when smoothing is on, plain polygon otherwise"""
        if self.smooth:
            return smooth_path(self.points, self.tension)
        return polygon_path(self.points)

    def to_painter_path(self) -> QPainterPath:
        """Same outline as a QPainterPath for Qt renderers"""
        path = QPainterPath()
        if not self.points:
            return path
        path.moveTo(QPointF(*self.points[0]))
        segments = self.segments()
        if segments:
            for c1, c2, end in segments:
                path.cubicTo(QPointF(*c1), QPointF(*c2), QPointF(*end))
        else:
            for point in self.points[1:]:
                path.lineTo(QPointF(*point))
        path.closeSubpath()
        return path


class BoundaryEngine:
    """Computes every domain outline from the arena, once per tick"""

    def __init__(self, config: Optional[BoundaryConfig] = None):
        self.config = config or BoundaryConfig()
        self.highlighted_domain = None

    def update_options(self, **changes):
        self.config = self.config.replace(**changes)

    def boundary_for_points(self, domain: str, points: Sequence[Point], color: Optional[str] = None):
        """Outline of one domain, or None when it has no positioned nodes"""
        if not points:
            return None
        outline = create_padded_boundary(points, self.config.padding, self.config.circle_segments)
        return BoundaryPolygon(
            domain=domain,
            points=outline,
            centroid=centroid(points),
            smooth=self.config.smoothing,
            tension=self.config.tension,
            color=color,
            node_count=len(points),
        )

    def compute(self, domain_groups: Mapping, arena: NodeArena) -> List[BoundaryPolygon]:
        """
        Outlines for every domain that has nodes in the arena.

        Args:
            domain_groups: Mapping of domain -> DomainGroup (for colors)
            arena: Current node positions
        """
        boundaries = []
        for group_index, domain in enumerate(arena.group_names):
            points = arena.positions_for_group(group_index)
            group = domain_groups.get(domain)
            boundary = self.boundary_for_points(domain, points, group.color if group is not None else None)
            if boundary is not None:
                boundaries.append(boundary)
        return boundaries

    def highlight_domain(self, domain: str):
        self.highlighted_domain = domain

    def clear_highlights(self):
        self.highlighted_domain = None

    def is_highlighted(self, domain: str) -> bool:
        return self.highlighted_domain == domain
