"""
Overlap removal for boxes that share a coordinate space.

Works on one nesting level at a time (siblings of the same parent); the
engine calls it once per container and once for the top level.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

from arch_layout.models import CellBounds, Point
from arch_layout.strategies import LayoutBox

logger = logging.getLogger("arch-layout")


def _bounds(box: LayoutBox) -> CellBounds:
    return CellBounds(box.position.x, box.position.y, box.width, box.height)


def find_overlaps(boxes: Iterable[LayoutBox], margin: float = 0) -> list[tuple[str, str]]:
    """All pairs of positioned boxes closer than *margin* (input order)."""
    placed = [b for b in boxes if b.position is not None]
    pairs: list[tuple[str, str]] = []
    for i in range(len(placed)):
        for j in range(i + 1, len(placed)):
            if _bounds(placed[i]).intersects(_bounds(placed[j]), margin):
                pairs.append((placed[i].id, placed[j].id))
    return pairs


def separation_distance(a: LayoutBox, b: LayoutBox, ux: float, uy: float, margin: float) -> float:
    """Center distance that must separate *a* and *b* along unit vector (ux, uy).

    The larger of the circle-style estimate (half of each box's larger
    side plus margin) and the distance at which the margin-expanded boxes
    stop overlapping along that direction.
    """
    radial = max(a.width, a.height) / 2 + max(b.width, b.height) / 2 + margin
    clear_x = (a.width + b.width) / 2 + margin
    clear_y = (a.height + b.height) / 2 + margin
    along_x = clear_x / abs(ux) if ux else math.inf
    along_y = clear_y / abs(uy) if uy else math.inf
    return max(radial, min(along_x, along_y))


def resolve_collisions(
    boxes: Iterable[LayoutBox],
    margin: float = 20,
    max_rounds: int = 10,
    fixed: Iterable[str] = (),
) -> int:
    """Push overlapping boxes apart along their center vector.

    Each round visits every overlapping pair and moves both boxes away
    from each other by half the separation deficit (plus one unit).  A box
    whose id is in *fixed*, or whose ``fixed`` flag is set, stays put and
    its partner takes the whole push.  Coincident centers have no
    direction and are skipped.  Stops after a round without overlaps or
    after *max_rounds*.

    Positions are updated in place.

    Returns:
        Number of pushes applied.
    """
    placed = [b for b in boxes if b.position is not None]
    pinned = set(fixed) | {b.id for b in placed if b.fixed}
    pushes = 0

    for _ in range(max_rounds):
        any_overlap = False
        for i in range(len(placed)):
            for j in range(i + 1, len(placed)):
                a, b = placed[i], placed[j]
                a_bounds, b_bounds = _bounds(a), _bounds(b)
                if not a_bounds.intersects(b_bounds, margin):
                    continue
                any_overlap = True

                a_fixed, b_fixed = a.id in pinned, b.id in pinned
                if a_fixed and b_fixed:
                    continue

                dx = b_bounds.cx - a_bounds.cx
                dy = b_bounds.cy - a_bounds.cy
                dist = math.hypot(dx, dy)
                if dist == 0:
                    continue
                ux, uy = dx / dist, dy / dist

                deficit = separation_distance(a, b, ux, uy, margin) - dist
                if deficit <= 0:
                    continue

                push = deficit / 2 + 1
                a_push = 0.0 if a_fixed else (2 * push if b_fixed else push)
                b_push = 0.0 if b_fixed else (2 * push if a_fixed else push)
                a.position = Point(a.position.x - ux * a_push, a.position.y - uy * a_push)
                b.position = Point(b.position.x + ux * b_push, b.position.y + uy * b_push)
                pushes += 1

        if not any_overlap:
            break
    else:
        if max_rounds and find_overlaps(placed, margin):
            logger.debug("Overlaps remain after %d collision rounds", max_rounds)

    return pushes
