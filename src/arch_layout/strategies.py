"""
Pluggable layout strategies.

Every strategy has the same contract::

    strategy(boxes, connections, config) -> {id: Point}

where *boxes* is an ordered mapping of ``LayoutBox`` (the top-level nodes
and containers of one level, already sized) and the returned points are
top-left corners.  Implemented algorithms:

- hierarchical   Kahn layering + barycenter crossing reduction
- force-directed Repulsion / spring simulation with linear cooling
- circular       Even ring, most-connected boxes first
- grid           Largest boxes first in a ⌈√N⌉-column grid
- organic        Force-directed followed by cluster tightening
- tree           Rooted subtrees centered over their children
- layered        One row per component type (ui → api → service → database)
"""

from __future__ import annotations

import logging
import math
import random
from collections import Counter, deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from arch_layout.graph import Graph, build_graph, connected_components, degree, find_roots
from arch_layout.models import Connection, Diagram, Point
from arch_layout.validation import LayoutConfigError

if TYPE_CHECKING:
    from arch_layout.config import LayoutConfig

logger = logging.getLogger("arch-layout")


@dataclass
class LayoutBox:
    """A sized rectangle handed to a strategy."""
    id: str
    width: float
    height: float
    type: str = "component"
    # Current top-left corner, if any (used as a simulation seed)
    position: Optional[Point] = None
    # Pinned boxes are never moved by the simulation
    fixed: bool = False

    @property
    def center(self) -> Optional[tuple[float, float]]:
        if self.position is None:
            return None
        return self.position.x + self.width / 2, self.position.y + self.height / 2


Strategy = Callable[[dict[str, LayoutBox], list[Connection], 'LayoutConfig'], dict[str, Point]]


# ---------------------------------------------------------------------------
# Direction helpers
# ---------------------------------------------------------------------------

def _is_vertical(direction: str) -> bool:
    return direction in ("TB", "BT")


def _main_extent(box: LayoutBox, direction: str) -> float:
    """Size along the rank axis."""
    return box.height if _is_vertical(direction) else box.width


def _cross_extent(box: LayoutBox, direction: str) -> float:
    """Size across the rank axis (where siblings sit side by side)."""
    return box.width if _is_vertical(direction) else box.height


def _to_point(main: float, cross: float, direction: str) -> Point:
    if _is_vertical(direction):
        return Point(cross, main)
    return Point(main, cross)


def _band_main(offset: float, band: float, extent: float, direction: str) -> float:
    """Main-axis coordinate of a box centered in the band ``[offset, offset+band]``.

    BT and RL mirror the band onto the negative side of the axis.
    """
    inset = (band - extent) / 2
    if direction in ("BT", "RL"):
        return -(offset + band) + inset
    return offset + inset


# ---------------------------------------------------------------------------
# Hierarchical (layered, Kahn + barycenter)
# ---------------------------------------------------------------------------

def detect_layers(graph: Graph) -> list[list[str]]:
    """Topologically layer the graph by in-degree reduction.

    When no unvisited node has in-degree zero (a cycle), the first
    unvisited node in graph order is forced into the layer, so the loop
    always ends within N layers.
    """
    in_degree = {nid: len(adj.incoming) for nid, adj in graph.items()}
    visited: set[str] = set()
    layers: list[list[str]] = []

    while len(visited) < len(graph):
        layer = [nid for nid in graph if nid not in visited and in_degree[nid] <= 0]
        if not layer:
            forced = next(nid for nid in graph if nid not in visited)
            logger.debug("Breaking cycle by forcing '%s' into layer %d", forced, len(layers))
            layer = [forced]

        layers.append(layer)
        for nid in layer:
            visited.add(nid)
        for nid in layer:
            for target in graph[nid].outgoing:
                in_degree[target] -= 1

    return layers


def barycenter_order(layer: list[str], previous: list[str], graph: Graph) -> list[str]:
    """Order *layer* by the mean index of each node's neighbours in *previous*.

    Nodes with no neighbour in the previous layer sit at its midpoint.
    The sort is stable, so ties keep their input order.
    """
    if not previous:
        return list(layer)
    index = {nid: i for i, nid in enumerate(previous)}
    midpoint = (len(previous) - 1) / 2

    def barycenter(nid: str) -> float:
        adj = graph[nid]
        hits = [index[n] for n in adj.incoming + adj.outgoing if n in index]
        return sum(hits) / len(hits) if hits else midpoint

    return sorted(layer, key=barycenter)


def place_layers(
    layers: list[list[str]],
    boxes: dict[str, LayoutBox],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    """Assign coordinates to ordered layers along ``config.direction``.

    Each layer occupies a band as deep as its largest box; bands are
    ``rank_spacing`` apart.  Within a band, boxes are ``node_spacing``
    apart and the row is centered on the cross-axis origin.
    """
    direction = config.direction
    node_spacing = config.spacing.node_spacing
    positions: dict[str, Point] = {}
    offset = 0.0

    for layer in layers:
        if not layer:
            continue
        band = max(_main_extent(boxes[n], direction) for n in layer)
        row_total = sum(_cross_extent(boxes[n], direction) for n in layer)
        row_total += node_spacing * (len(layer) - 1)
        cursor = -row_total / 2

        for nid in layer:
            box = boxes[nid]
            main = _band_main(offset, band, _main_extent(box, direction), direction)
            positions[nid] = _to_point(main, cursor, direction)
            cursor += _cross_extent(box, direction) + node_spacing

        offset += band + config.spacing.rank_spacing

    return positions


def hierarchical_layout(
    boxes: dict[str, LayoutBox],
    connections: list[Connection],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    graph = build_graph(boxes, connections)
    layers = detect_layers(graph)

    if config.constraints.minimize_edge_crossings:
        for i in range(1, len(layers)):
            layers[i] = barycenter_order(layers[i], layers[i - 1], graph)

    logger.debug("Hierarchical layout: %d layers for %d boxes", len(layers), len(boxes))
    return place_layers(layers, boxes, config)


# ---------------------------------------------------------------------------
# Force-directed
# ---------------------------------------------------------------------------

# Seeds are drawn uniformly from center ± these half-extents
SEED_HALF_WIDTH = 400
SEED_HALF_HEIGHT = 300
MAX_STEP = 10


def _seed_centers(
    boxes: dict[str, LayoutBox],
    config: 'LayoutConfig',
    rng: random.Random,
) -> dict[str, list[float]]:
    centers: dict[str, list[float]] = {}
    for nid, box in boxes.items():
        existing = box.center
        if existing is not None:
            centers[nid] = [existing[0], existing[1]]
        else:
            centers[nid] = [
                config.center.x + rng.uniform(-SEED_HALF_WIDTH, SEED_HALF_WIDTH),
                config.center.y + rng.uniform(-SEED_HALF_HEIGHT, SEED_HALF_HEIGHT),
            ]
    return centers


def simulate_forces(
    centers: dict[str, list[float]],
    connections: list[Connection],
    config: 'LayoutConfig',
    fixed: frozenset[str] = frozenset(),
) -> None:
    """Run the spring-electrical simulation in place on *centers*.

    Per tick every pair repels with ``repulsion / d²`` and every edge pulls
    with ``attraction × (d − edge_length)``.  The per-tick move is capped at
    ``10 × (1 − tick / iterations)`` (linear cooling).  Co-located pairs
    contribute nothing.
    """
    sim = config.simulation
    ids = list(centers)
    edges = [
        (c.source, c.target) for c in connections
        if c.source in centers and c.target in centers and c.source != c.target
    ]

    for tick in range(sim.iterations):
        forces = {nid: [0.0, 0.0] for nid in ids}

        for i in range(len(ids)):
            a = centers[ids[i]]
            for j in range(i + 1, len(ids)):
                b = centers[ids[j]]
                dx = b[0] - a[0]
                dy = b[1] - a[1]
                dist = math.hypot(dx, dy)
                if dist == 0:
                    continue
                force = sim.repulsion / (dist * dist)
                fx = dx / dist * force
                fy = dy / dist * force
                forces[ids[i]][0] -= fx
                forces[ids[i]][1] -= fy
                forces[ids[j]][0] += fx
                forces[ids[j]][1] += fy

        for src, tgt in edges:
            a = centers[src]
            b = centers[tgt]
            dx = b[0] - a[0]
            dy = b[1] - a[1]
            dist = math.hypot(dx, dy)
            if dist == 0:
                continue
            force = sim.attraction * (dist - sim.edge_length)
            fx = dx / dist * force
            fy = dy / dist * force
            forces[src][0] += fx
            forces[src][1] += fy
            forces[tgt][0] -= fx
            forces[tgt][1] -= fy

        max_move = MAX_STEP * (1 - tick / sim.iterations)
        for nid in ids:
            if nid in fixed:
                continue
            fx, fy = forces[nid]
            magnitude = math.hypot(fx, fy)
            if magnitude == 0:
                continue
            move = min(magnitude, max_move)
            centers[nid][0] += fx / magnitude * move
            centers[nid][1] += fy / magnitude * move


def _centers_to_points(
    centers: dict[str, list[float]],
    boxes: dict[str, LayoutBox],
) -> dict[str, Point]:
    return {
        nid: Point(c[0] - boxes[nid].width / 2, c[1] - boxes[nid].height / 2)
        for nid, c in centers.items()
    }


def _fixed_ids(boxes: dict[str, LayoutBox]) -> frozenset[str]:
    return frozenset(nid for nid, box in boxes.items() if box.fixed)


def force_directed_layout(
    boxes: dict[str, LayoutBox],
    connections: list[Connection],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    rng = random.Random(config.simulation.seed)
    centers = _seed_centers(boxes, config, rng)
    simulate_forces(centers, connections, config, _fixed_ids(boxes))
    return _centers_to_points(centers, boxes)


# ---------------------------------------------------------------------------
# Circular
# ---------------------------------------------------------------------------

def circular_layout(
    boxes: dict[str, LayoutBox],
    connections: list[Connection],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    """Evenly spaced ring; radius grows with the box count."""
    if not boxes:
        return {}
    graph = build_graph(boxes, connections)
    ordered = sorted(boxes, key=lambda nid: -degree(graph, nid))
    radius = max(200, 20 * len(boxes))
    step = 2 * math.pi / len(boxes)

    positions: dict[str, Point] = {}
    for i, nid in enumerate(ordered):
        box = boxes[nid]
        angle = i * step
        cx = radius * math.cos(angle)
        cy = radius * math.sin(angle)
        positions[nid] = Point(cx - box.width / 2, cy - box.height / 2)
    return positions


# ---------------------------------------------------------------------------
# Grid
# ---------------------------------------------------------------------------

GRID_SPACING_FACTOR = 0.3


def grid_layout(
    boxes: dict[str, LayoutBox],
    connections: list[Connection],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    """Largest boxes first in a ⌈√N⌉-column grid.

    Columns are as wide as their widest member and rows as tall as their
    tallest; every box is centered in its cell.  Current positions are
    ignored, so laying out the result again reproduces it exactly.
    """
    if not boxes:
        return {}
    ordered = sorted(boxes.values(), key=lambda b: -(b.width * b.height))
    cols = math.ceil(math.sqrt(len(ordered)))
    rows = math.ceil(len(ordered) / cols)
    max_dim = max(max(b.width, b.height) for b in ordered)
    gap = max(config.spacing.node_spacing, max_dim * GRID_SPACING_FACTOR)

    col_widths = [0.0] * cols
    row_heights = [0.0] * rows
    for i, box in enumerate(ordered):
        col_widths[i % cols] = max(col_widths[i % cols], box.width)
        row_heights[i // cols] = max(row_heights[i // cols], box.height)

    col_x = [sum(col_widths[:c]) + gap * c for c in range(cols)]
    row_y = [sum(row_heights[:r]) + gap * r for r in range(rows)]

    positions: dict[str, Point] = {}
    for i, box in enumerate(ordered):
        col, row = i % cols, i // cols
        positions[box.id] = Point(
            col_x[col] + (col_widths[col] - box.width) / 2,
            row_y[row] + (row_heights[row] - box.height) / 2,
        )
    return positions


# ---------------------------------------------------------------------------
# Organic
# ---------------------------------------------------------------------------

CLUSTER_PULL = 0.1


def organic_layout(
    boxes: dict[str, LayoutBox],
    connections: list[Connection],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    """Force-directed, then each connected cluster is drawn toward its centroid."""
    rng = random.Random(config.simulation.seed)
    centers = _seed_centers(boxes, config, rng)
    fixed = _fixed_ids(boxes)
    simulate_forces(centers, connections, config, fixed)

    graph = build_graph(boxes, connections)
    clusters = [c for c in connected_components(graph) if len(c) > 1]
    for _ in range(config.simulation.cluster_passes):
        for cluster in clusters:
            cx = sum(centers[n][0] for n in cluster) / len(cluster)
            cy = sum(centers[n][1] for n in cluster) / len(cluster)
            for nid in cluster:
                if nid in fixed:
                    continue
                centers[nid][0] += (cx - centers[nid][0]) * CLUSTER_PULL
                centers[nid][1] += (cy - centers[nid][1]) * CLUSTER_PULL

    logger.debug("Organic layout tightened %d clusters", len(clusters))
    return _centers_to_points(centers, boxes)


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------

def build_forest(graph: Graph, roots: list[str]) -> tuple[list[str], dict[str, list[str]], dict[str, int]]:
    """Grow one BFS tree per root over outgoing edges.

    Each node joins the first tree that reaches it, so cycles cannot loop.
    Nodes unreachable from any root start extra single-root trees.

    Returns:
        (tree roots, children per node, depth per node)
    """
    children: dict[str, list[str]] = {nid: [] for nid in graph}
    depth: dict[str, int] = {}
    tree_roots: list[str] = []

    def grow(root: str) -> None:
        tree_roots.append(root)
        depth[root] = 0
        queue = deque([root])
        while queue:
            current = queue.popleft()
            for child in graph[current].outgoing:
                if child not in depth:
                    depth[child] = depth[current] + 1
                    children[current].append(child)
                    queue.append(child)

    for root in roots:
        if root not in depth:
            grow(root)
    for nid in graph:
        if nid not in depth:
            grow(nid)

    return tree_roots, children, depth


def tree_layout(
    boxes: dict[str, LayoutBox],
    connections: list[Connection],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    """Tidy tree: parents centered over their children's span.

    Falls back to the hierarchical layout when no box has in-degree zero.
    """
    graph = build_graph(boxes, connections)
    roots = find_roots(graph)
    if not roots:
        logger.info("Tree layout found no root; falling back to hierarchical")
        return hierarchical_layout(boxes, connections, config)

    direction = config.direction
    node_spacing = config.spacing.node_spacing
    tree_roots, children, depth = build_forest(graph, roots)

    # Band depth per level, then cumulative offsets
    max_level = max(depth.values(), default=0)
    bands = [0.0] * (max_level + 1)
    for nid, lvl in depth.items():
        bands[lvl] = max(bands[lvl], _main_extent(boxes[nid], direction))
    offsets = [0.0] * (max_level + 1)
    for lvl in range(1, max_level + 1):
        offsets[lvl] = offsets[lvl - 1] + bands[lvl - 1] + config.spacing.rank_spacing

    spans: dict[str, float] = {}

    def span(nid: str) -> float:
        if nid not in spans:
            own = _cross_extent(boxes[nid], direction)
            kids = children[nid]
            if kids:
                kids_total = sum(span(k) for k in kids) + node_spacing * (len(kids) - 1)
                own = max(own, kids_total)
            spans[nid] = own
        return spans[nid]

    positions: dict[str, Point] = {}

    def place(nid: str, start: float) -> None:
        box = boxes[nid]
        total = span(nid)
        lvl = depth[nid]
        cross = start + (total - _cross_extent(box, direction)) / 2
        main = _band_main(offsets[lvl], bands[lvl], _main_extent(box, direction), direction)
        positions[nid] = _to_point(main, cross, direction)

        kids = children[nid]
        if kids:
            kids_total = sum(span(k) for k in kids) + node_spacing * (len(kids) - 1)
            cursor = start + (total - kids_total) / 2
            for kid in kids:
                place(kid, cursor)
                cursor += span(kid) + node_spacing

    cursor = 0.0
    for root in tree_roots:
        place(root, cursor)
        cursor += span(root) + 2 * node_spacing

    logger.debug("Tree layout: %d trees, %d levels", len(tree_roots), max_level + 1)
    return positions


# ---------------------------------------------------------------------------
# Layered by component type
# ---------------------------------------------------------------------------

TYPE_ORDER = ("ui", "api", "service", "database")


def layered_layout(
    boxes: dict[str, LayoutBox],
    connections: list[Connection],
    config: 'LayoutConfig',
) -> dict[str, Point]:
    """One rank per component type, well-known tiers first."""
    by_type: dict[str, list[str]] = {}
    for nid, box in boxes.items():
        by_type.setdefault(box.type, []).append(nid)

    layers = [by_type.pop(t) for t in TYPE_ORDER if t in by_type]
    layers.extend(by_type.values())
    return place_layers(layers, boxes, config)


# ---------------------------------------------------------------------------
# Registry & selection
# ---------------------------------------------------------------------------

STRATEGIES: dict[str, Strategy] = {
    "hierarchical": hierarchical_layout,
    "force-directed": force_directed_layout,
    "circular": circular_layout,
    "grid": grid_layout,
    "organic": organic_layout,
    "tree": tree_layout,
    "layered": layered_layout,
}


def get_strategy(name: str) -> Strategy:
    """Look up a strategy by name; unknown names fail fast."""
    try:
        return STRATEGIES[name]
    except KeyError:
        choices = ", ".join(sorted(STRATEGIES))
        raise LayoutConfigError(
            f"Unsupported layout algorithm '{name}'. Valid algorithms: {choices}."
        ) from None


# Selection thresholds
CONTAINER_HEAVY_RATIO = 0.25
GRID_MIN_NODES = 6
GRID_TYPE_SHARE = 0.6
GRID_MAX_TEXT = 40
FORCE_RANGE = (6, 15)


def select_algorithm(diagram: Diagram) -> str:
    """Pick a strategy from the diagram's shape.

    1. container-heavy → hierarchical
    2. many small components of one type → grid
    3. medium mixed graphs (6–15 nodes) → force-directed
    4. anything else → circular
    """
    node_count = len(diagram.nodes)
    container_count = len(diagram.containers)

    if container_count and container_count >= CONTAINER_HEAVY_RATIO * node_count:
        return "hierarchical"

    if node_count > GRID_MIN_NODES:
        _, top = Counter(n.type for n in diagram.nodes).most_common(1)[0]
        small = all(len(n.text) <= GRID_MAX_TEXT for n in diagram.nodes)
        if top >= GRID_TYPE_SHARE * node_count and small:
            return "grid"

    if FORCE_RANGE[0] <= node_count <= FORCE_RANGE[1]:
        return "force-directed"

    return "circular"
