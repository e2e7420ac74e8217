"""
Container composition.

Containers are laid out bottom-up: the deepest containers first, so that
when a container is sized every child (including nested containers) is
already final.  Children sit in a uniform grid below the container's
header; the container grows to enclose them plus padding, but never
shrinks below the size its own text needs.

Child positions are relative to the parent container's top-left corner.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from arch_layout.models import CellBounds, Diagram, Point, Size
from arch_layout.sizing import CONTAINER_BOUNDS, estimate_size

logger = logging.getLogger("arch-layout")

MIN_RING_RADIUS = 120
RING_SPREAD = 1.5


@dataclass
class Composition:
    """Result of composing every container of a diagram, keyed by id."""
    # Final container sizes
    sizes: dict[str, Size] = field(default_factory=dict)
    # Child positions, relative to their parent container
    positions: dict[str, Point] = field(default_factory=dict)
    header_heights: dict[str, float] = field(default_factory=dict)

    def apply(self, diagram: Diagram) -> None:
        """Write sizes and child positions onto *diagram*'s entities."""
        for ent in diagram.entities():
            if ent.id in self.sizes:
                ent.size = self.sizes[ent.id]
            if ent.id in self.positions:
                ent.position = self.positions[ent.id]


def containers_deepest_first(diagram: Diagram) -> list[str]:
    """Container ids ordered by nesting depth, deepest first (stable)."""
    ids = [c.id for c in diagram.containers]
    by_id = diagram.entity_map()
    depth = {cid: diagram.depth_of(cid, by_id) for cid in ids}
    return sorted(ids, key=lambda cid: -depth[cid])


def compose_containers(
    diagram: Diagram,
    padding: float = 40,
    pinned: Iterable[str] = (),
) -> Composition:
    """Grid-arrange each container's children and size the container.

    Children are placed in a ``⌈√n⌉``-column grid of uniform cells (the
    largest child width × height), ``padding`` apart, offset by
    ``padding`` from the left and ``header_height + padding`` from the
    top.  Children listed in *pinned* keep their current relative
    position.  Node sizes are read from *diagram* and must already be set.

    The diagram is not modified; call ``Composition.apply``.
    """
    pinned = set(pinned)
    sizes: dict[str, Size] = {
        ent.id: ent.size for ent in diagram.entities() if ent.size is not None
    }
    result = Composition()
    by_id = diagram.entity_map()
    children_by_parent = diagram.children_index()

    for cid in containers_deepest_first(diagram):
        container = by_id[cid]
        estimate = estimate_size(container.label, container.description, CONTAINER_BOUNDS)
        header = estimate.header_height
        result.header_heights[cid] = header

        children = children_by_parent.get(cid, [])
        child_sizes = {ch.id: sizes.get(ch.id, Size(0, 0)) for ch in children}
        placed = [ch for ch in children if ch.id not in pinned or ch.position is None]

        if placed:
            cols = math.ceil(math.sqrt(len(placed)))
            cell_w = max(child_sizes[ch.id].width for ch in placed)
            cell_h = max(child_sizes[ch.id].height for ch in placed)
            for i, child in enumerate(placed):
                col, row = i % cols, i // cols
                size = child_sizes[child.id]
                result.positions[child.id] = Point(
                    padding + col * (cell_w + padding) + (cell_w - size.width) / 2,
                    header + padding + row * (cell_h + padding) + (cell_h - size.height) / 2,
                )

        width, height = estimate.width, estimate.height
        for child in children:
            pos = result.positions.get(child.id, child.position)
            size = child_sizes[child.id]
            width = max(width, pos.x + size.width + padding)
            height = max(height, pos.y + size.height + padding)

        sizes[cid] = Size(width, height)
        result.sizes[cid] = sizes[cid]
        logger.debug("Composed container '%s': %d children, %.0fx%.0f",
                     cid, len(children), width, height)

    return result


def arrange_root_containers(sizes: dict[str, Size], center: Point) -> dict[str, Point]:
    """Place root containers evenly on a ring around *center*.

    The radius scales with the largest container and the container count
    so neighbouring groups start clear of each other.  Returns top-left
    corners.
    """
    if not sizes:
        return {}
    count = len(sizes)
    max_size = max(max(s.width, s.height) for s in sizes.values())
    radius = max(MIN_RING_RADIUS, max_size * count / (math.pi * RING_SPREAD))

    positions: dict[str, Point] = {}
    for i, (cid, size) in enumerate(sizes.items()):
        angle = 2 * math.pi * i / count
        positions[cid] = Point(
            center.x + radius * math.cos(angle) - size.width / 2,
            center.y + radius * math.sin(angle) - size.height / 2,
        )
    return positions


def fit_container(
    diagram: Diagram,
    container_id: str,
    padding: float,
    header_height: float,
) -> bool:
    """Shift children back inside the content area and regrow the container.

    The content area starts ``padding`` from the left and
    ``header_height + padding`` from the top.  Returns True when anything
    moved or grew.
    """
    container = diagram.entity(container_id)
    children = [ch for ch in diagram.children_of(container_id) if ch.position is not None]
    if container is None or not children:
        return False

    extent = CellBounds.union([ch.bounds() for ch in children])
    shift_x = max(0.0, padding - extent.x)
    shift_y = max(0.0, header_height + padding - extent.y)
    if shift_x or shift_y:
        for child in children:
            child.position = Point(child.position.x + shift_x, child.position.y + shift_y)

    size = container.size or Size(0, 0)
    width = max(size.width, extent.right + shift_x + padding)
    height = max(size.height, extent.bottom + shift_y + padding)
    changed = bool(shift_x or shift_y) or width != size.width or height != size.height
    container.size = Size(width, height)
    return changed


def fit_containers(
    diagram: Diagram,
    padding: float,
    header_heights: Optional[dict[str, float]] = None,
) -> int:
    """Run ``fit_container`` over every container, deepest first.

    Returns the number of containers that changed.
    """
    header_heights = header_heights or {}
    by_id = diagram.entity_map()
    changed = 0
    for cid in containers_deepest_first(diagram):
        header = header_heights.get(cid)
        if header is None:
            container = by_id[cid]
            header = estimate_size(container.label, container.description, CONTAINER_BOUNDS).header_height
        if fit_container(diagram, cid, padding, header):
            changed += 1
    return changed


def assign_z_indices(diagram: Diagram) -> None:
    """z-index is nesting depth + 1, so children always draw above parents."""
    by_id = diagram.entity_map()
    for ent in diagram.entities():
        ent.z_index = diagram.depth_of(ent.id, by_id) + 1
