"""
Auto-layout pipeline.

``layout()`` is the single entry point: it takes a diagram snapshot and a
configuration and returns a new, fully positioned diagram together with
quality metrics.  The caller's diagram is never modified and no state is
kept between calls.

Pipeline:
    copy → repair parent references → size nodes → compose containers →
    seed root containers → run strategy on top-level boxes → resolve
    collisions per nesting level (and refit containers) → route
    connections → z-index → metrics
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional, Union

from arch_layout.collision import resolve_collisions
from arch_layout.config import LayoutConfig
from arch_layout.containers import (
    arrange_root_containers,
    assign_z_indices,
    compose_containers,
    containers_deepest_first,
    fit_container,
)
from arch_layout.graph import lift_connections
from arch_layout.metrics import LayoutMetrics, calculate_metrics, diagram_bounds
from arch_layout.models import CellBounds, Container, Diagram, Node, Size
from arch_layout.routing import optimize_connections
from arch_layout.sizing import NODE_BOUNDS, estimate_size
from arch_layout.strategies import STRATEGIES, LayoutBox, Strategy, get_strategy, select_algorithm
from arch_layout.validation import invalid_parent_refs, validate_algorithm, validate_direction

logger = logging.getLogger("arch-layout")


@dataclass
class LayoutResult:
    diagram: Diagram
    metrics: LayoutMetrics
    # Strategy actually used (after auto-selection)
    algorithm: str
    bounds: CellBounds

    def to_dict(self) -> dict[str, Any]:
        return {
            "diagram": self.diagram.to_dict(),
            "metrics": self.metrics.to_dict(),
            "algorithm": self.algorithm,
            "bounds": self.bounds.to_dict(),
        }


def layout(
    diagram: Union[Diagram, dict[str, Any]],
    config: Union[LayoutConfig, dict[str, Any], None] = None,
) -> LayoutResult:
    """Lay out *diagram* and return a new positioned copy.

    Args:
        diagram: A ``Diagram`` or its camelCase JSON mapping.
        config: A ``LayoutConfig``, a mapping of camelCase layout options,
            or None for the defaults (auto-selected algorithm).

    Raises:
        LayoutConfigError: Unknown algorithm or invalid option, before any
            layout work is done.
        ValidationError: Malformed diagram mapping.
    """
    cfg = _resolve_config(config)
    if isinstance(diagram, Diagram):
        work = copy.deepcopy(diagram)
    else:
        work = Diagram.from_dict(copy.deepcopy(diagram))

    if not work.nodes and not work.containers:
        logger.info("Nothing to lay out: diagram has no nodes or containers")
        return LayoutResult(
            diagram=work,
            metrics=LayoutMetrics(total_connections=len(work.connections)),
            algorithm=cfg.algorithm or "none",
            bounds=diagram_bounds(work),
        )

    algorithm = cfg.algorithm or select_algorithm(work)
    strategy = get_strategy(algorithm)
    logger.info(
        "Laying out %d nodes, %d containers, %d connections with '%s'",
        len(work.nodes), len(work.containers), len(work.connections), algorithm,
    )

    _repair_parents(work)
    pinned = _pinned_ids(work, cfg)

    _estimate_node_sizes(work, cfg)
    composition = compose_containers(work, cfg.spacing.container_padding, pinned)
    composition.apply(work)

    _place_top_level(work, strategy, cfg, pinned)
    _settle(work, cfg, pinned, composition.header_heights)

    routed = optimize_connections(work.connections)
    assign_z_indices(work)
    logger.debug("Assigned default routing to %d connections", routed)

    metrics = calculate_metrics(work)
    logger.info("Layout done: %d edge crossings", metrics.edge_crossings)
    return LayoutResult(diagram=work, metrics=metrics, algorithm=algorithm, bounds=diagram_bounds(work))


# ---------------------------------------------------------------------------
# Pipeline steps
# ---------------------------------------------------------------------------

def _resolve_config(config: Union[LayoutConfig, dict[str, Any], None]) -> LayoutConfig:
    if config is None:
        return LayoutConfig()
    if isinstance(config, LayoutConfig):
        # Dataclass-built configs skip from_dict, so check the names here
        return replace(
            config,
            algorithm=validate_algorithm(config.algorithm, set(STRATEGIES)),
            direction=validate_direction(config.direction),
        )
    return LayoutConfig.from_dict(config)


def _repair_parents(diagram: Diagram) -> None:
    """Treat entities with an unusable parent as top level."""
    for entity_id, reason in invalid_parent_refs(diagram).items():
        logger.warning("Ignoring parent of '%s': %s", entity_id, reason)
        diagram.entity(entity_id).parent_container = None


def _pinned_ids(diagram: Diagram, cfg: LayoutConfig) -> frozenset[str]:
    """Entities whose input position must survive the layout."""
    if not cfg.constraints.preserve_user_positions:
        return frozenset()
    return frozenset(ent.id for ent in diagram.entities() if ent.position is not None)


def _estimate_node_sizes(diagram: Diagram, cfg: LayoutConfig) -> None:
    for node in diagram.nodes:
        est = estimate_size(node.label, node.description, NODE_BOUNDS)
        node.size = Size(est.width, est.height)

    if not cfg.constraints.align_similar_nodes:
        return

    # Same-type siblings share the largest size in their group
    groups: dict[tuple[Optional[str], str], list[Node]] = {}
    for node in diagram.nodes:
        groups.setdefault((node.parent_container, node.type), []).append(node)
    for members in groups.values():
        if len(members) < 2:
            continue
        width = max(n.size.width for n in members)
        height = max(n.size.height for n in members)
        for node in members:
            node.size = Size(width, height)


def _top_of(diagram: Diagram) -> Callable[[str], Optional[str]]:
    by_id = diagram.entity_map()

    def top_of(entity_id: str) -> Optional[str]:
        current = by_id.get(entity_id)
        if current is None:
            return None
        while current.parent_container and current.parent_container in by_id:
            current = by_id[current.parent_container]
        return current.id

    return top_of


def _place_top_level(
    diagram: Diagram,
    strategy: Strategy,
    cfg: LayoutConfig,
    pinned: frozenset[str],
) -> None:
    top = diagram.top_level()
    roots = [ent for ent in top if isinstance(ent, Container)]
    ring = arrange_root_containers({c.id: c.size for c in roots}, cfg.center)

    boxes: dict[str, LayoutBox] = {}
    for ent in top:
        fixed = ent.id in pinned
        boxes[ent.id] = LayoutBox(
            id=ent.id,
            width=ent.size.width,
            height=ent.size.height,
            type=ent.type,
            position=ent.position if fixed else ring.get(ent.id),
            fixed=fixed,
        )

    connections = lift_connections(diagram.connections, _top_of(diagram))
    positions = strategy(boxes, connections, cfg)
    for ent in top:
        if ent.id not in pinned:
            ent.position = positions[ent.id]


def _boxes_for(entities: list[Node], pinned: frozenset[str]) -> list[LayoutBox]:
    return [
        LayoutBox(
            id=ent.id,
            width=ent.size.width,
            height=ent.size.height,
            type=ent.type,
            position=ent.position,
            fixed=ent.id in pinned,
        )
        for ent in entities
        if ent.position is not None and ent.size is not None
    ]


def _write_back(entities: list[Node], boxes: list[LayoutBox]) -> None:
    by_id = {box.id: box for box in boxes}
    for ent in entities:
        if ent.id in by_id:
            ent.position = by_id[ent.id].position


def _settle(
    diagram: Diagram,
    cfg: LayoutConfig,
    pinned: frozenset[str],
    header_heights: dict[str, float],
) -> None:
    """Resolve sibling overlaps level by level, innermost containers first."""
    margin = cfg.collision.margin
    rounds = cfg.collision.max_rounds

    children_by_parent = diagram.children_index()
    for cid in containers_deepest_first(diagram):
        children = children_by_parent.get(cid, [])
        boxes = _boxes_for(children, pinned)
        if resolve_collisions(boxes, margin, rounds):
            _write_back(children, boxes)
        if cfg.constraints.respect_container_bounds:
            fit_container(diagram, cid, cfg.spacing.container_padding, header_heights[cid])

    top = diagram.top_level()
    boxes = _boxes_for(top, pinned)
    pushes = resolve_collisions(boxes, margin, rounds)
    _write_back(top, boxes)
    logger.debug("Top-level collision pass applied %d pushes", pushes)
