"""
Layout quality metrics.

Reported alongside a finished layout; never fed back into it.  All
measurements use absolute box centers.
"""

from __future__ import annotations

import itertools
import math
from dataclasses import dataclass
from typing import Any, Iterable

from arch_layout.models import CellBounds, Connection, Diagram

Coord = tuple[float, float]
Segment = tuple[Coord, Coord]

PARALLEL_EPSILON = 1e-10


def segments_cross(a: Segment, b: Segment) -> bool:
    """True when the two segments properly intersect.

    Parallel (or degenerate) segments never cross, and touching at an
    endpoint does not count, so edges sharing a node are not a crossing.
    """
    (x1, y1), (x2, y2) = a
    (x3, y3), (x4, y4) = b
    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < PARALLEL_EPSILON:
        return False
    t = ((x1 - x3) * (y3 - y4) - (y1 - y3) * (x3 - x4)) / denom
    u = -((x1 - x2) * (y1 - y3) - (y1 - y2) * (x1 - x3)) / denom
    return 0 < t < 1 and 0 < u < 1


def _segments(centers: dict[str, Coord], connections: Iterable[Connection]) -> list[Segment]:
    return [
        (centers[c.source], centers[c.target])
        for c in connections
        if c.source in centers and c.target in centers
    ]


def count_edge_crossings(centers: dict[str, Coord], connections: Iterable[Connection]) -> int:
    """Number of unordered connection pairs whose straight lines cross."""
    segments = _segments(centers, connections)
    return sum(1 for a, b in itertools.combinations(segments, 2) if segments_cross(a, b))


def node_distribution(points: Iterable[Coord]) -> tuple[float, float]:
    """Population variance of the x and y coordinates."""
    points = list(points)
    if not points:
        return 0.0, 0.0
    n = len(points)
    mean_x = sum(p[0] for p in points) / n
    mean_y = sum(p[1] for p in points) / n
    var_x = sum((p[0] - mean_x) ** 2 for p in points) / n
    var_y = sum((p[1] - mean_y) ** 2 for p in points) / n
    return var_x, var_y


def average_edge_length(centers: dict[str, Coord], connections: Iterable[Connection]) -> float:
    segments = _segments(centers, connections)
    if not segments:
        return 0.0
    return sum(math.dist(p, q) for p, q in segments) / len(segments)


@dataclass
class LayoutMetrics:
    edge_crossings: int = 0
    variance_x: float = 0.0
    variance_y: float = 0.0
    average_edge_length: float = 0.0
    total_nodes: int = 0
    total_connections: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "edgeCrossings": self.edge_crossings,
            "nodeDistribution": {
                "varianceX": self.variance_x,
                "varianceY": self.variance_y,
            },
            "averageEdgeLength": self.average_edge_length,
            "totalNodes": self.total_nodes,
            "totalConnections": self.total_connections,
        }


def absolute_centers(diagram: Diagram) -> dict[str, Coord]:
    """Absolute center of every positioned node and container."""
    centers: dict[str, Coord] = {}
    by_id = diagram.entity_map()
    for ent in diagram.entities():
        if ent.position is None:
            continue
        bounds = diagram.absolute_bounds(ent.id, by_id)
        centers[ent.id] = (bounds.cx, bounds.cy)
    return centers


def calculate_metrics(diagram: Diagram) -> LayoutMetrics:
    centers = absolute_centers(diagram)
    node_points = [centers[n.id] for n in diagram.nodes if n.id in centers]
    var_x, var_y = node_distribution(node_points)
    return LayoutMetrics(
        edge_crossings=count_edge_crossings(centers, diagram.connections),
        variance_x=var_x,
        variance_y=var_y,
        average_edge_length=average_edge_length(centers, diagram.connections),
        total_nodes=len(diagram.nodes),
        total_connections=len(diagram.connections),
    )


def diagram_bounds(diagram: Diagram) -> CellBounds:
    """Bounding box of all positioned top-level entities (zeros when empty)."""
    boxes = [
        ent.bounds() for ent in diagram.top_level() if ent.position is not None
    ]
    return CellBounds.union(boxes) or CellBounds(0, 0, 0, 0)
