"""
Core model classes for architecture diagrams.

Provides typed containers for nodes, containers and connections plus the
conversion to and from the camelCase JSON exchanged with diagram producers
(description parsers, template generators, importers) and renderers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from arch_layout.validation import ValidationError


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass
class Point:
    """A 2-D coordinate."""
    x: float
    y: float

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


@dataclass
class Size:
    """Width × height of a box."""
    width: float
    height: float

    def to_dict(self) -> dict[str, float]:
        return {"width": self.width, "height": self.height}


@dataclass
class CellBounds:
    """Axis-aligned bounding box for a node or container."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def cx(self) -> float:
        return self.x + self.width / 2

    @property
    def cy(self) -> float:
        return self.y + self.height / 2

    def intersects(self, other: 'CellBounds', margin: float = 0) -> bool:
        """Check if two bounding boxes overlap (with optional margin)."""
        return not (
            self.right + margin <= other.x
            or other.right + margin <= self.x
            or self.bottom + margin <= other.y
            or other.bottom + margin <= self.y
        )

    def contains(self, other: 'CellBounds', inset: float = 0) -> bool:
        """Check if *other* lies fully inside this box shrunk by *inset*."""
        return (
            self.x + inset <= other.x
            and self.y + inset <= other.y
            and other.right <= self.right - inset
            and other.bottom <= self.bottom - inset
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @staticmethod
    def union(boxes: list['CellBounds']) -> Optional['CellBounds']:
        """Smallest box enclosing all *boxes* (None when empty)."""
        if not boxes:
            return None
        min_x = min(b.x for b in boxes)
        min_y = min(b.y for b in boxes)
        max_x = max(b.right for b in boxes)
        max_y = max(b.bottom for b in boxes)
        return CellBounds(min_x, min_y, max_x - min_x, max_y - min_y)


# ---------------------------------------------------------------------------
# Diagram entities
# ---------------------------------------------------------------------------

@dataclass
class Node:
    """An atomic diagram box representing a system component."""
    id: str
    type: str = "component"
    label: str = ""
    description: str = ""
    position: Optional[Point] = None
    size: Optional[Size] = None
    # Weak back-reference to the enclosing container's id
    parent_container: Optional[str] = None
    z_index: int = 0
    # Input keys the engine does not interpret (style, data, ...)
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return f"{self.label} {self.description}".strip()

    def bounds(self) -> CellBounds:
        """Bounds in the parent's coordinate space."""
        pos = self.position or Point(0, 0)
        size = self.size or Size(0, 0)
        return CellBounds(pos.x, pos.y, size.width, size.height)

    @classmethod
    def from_dict(cls, data: Any, kind: str = "node") -> 'Node':
        if not isinstance(data, dict):
            raise ValidationError(f"Each {kind} must be an object, got {type(data).__name__}.")
        if not isinstance(data.get("id"), str) or not data["id"]:
            raise ValidationError(f"Each {kind} requires a non-empty string 'id'.")
        known = {
            "id", "type", "label", "description", "position", "size",
            "parentContainer", "zIndex",
        }
        node = cls(
            id=data["id"],
            label=str(data.get("label") or ""),
            description=str(data.get("description") or ""),
            position=_point_from(data.get("position")),
            size=_size_from(data.get("size")),
            parent_container=data.get("parentContainer") or None,
            z_index=_int_from(data.get("zIndex"), "zIndex"),
            extra={k: v for k, v in data.items() if k not in known},
        )
        if data.get("type"):
            node.type = str(data["type"])
        return node

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "label": self.label,
        }
        if self.description:
            out["description"] = self.description
        if self.position is not None:
            out["position"] = self.position.to_dict()
        if self.size is not None:
            out["size"] = self.size.to_dict()
        if self.parent_container:
            out["parentContainer"] = self.parent_container
        out["zIndex"] = self.z_index
        out.update(self.extra)
        return out


@dataclass
class Container(Node):
    """A grouping box; its children point at it via ``parent_container``."""
    type: str = "container"

    @classmethod
    def from_dict(cls, data: Any, kind: str = "container") -> 'Container':
        return super().from_dict(data, kind)


@dataclass
class Routing:
    """Structured routing hint attached to a connection."""
    algorithm: str = "orthogonal"
    avoid_obstacles: bool = True
    grid_snap: bool = True
    jetty_length: float = 20

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> 'Routing':
        return cls(
            algorithm=str(data.get("algorithm", "orthogonal")),
            avoid_obstacles=bool(data.get("avoidObstacles", True)),
            grid_snap=bool(data.get("gridSnap", True)),
            jetty_length=float(data.get("jettyLength", 20)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "algorithm": self.algorithm,
            "avoidObstacles": self.avoid_obstacles,
            "gridSnap": self.grid_snap,
            "jettyLength": self.jetty_length,
        }


@dataclass
class Connection:
    """A directed link between two nodes/containers."""
    id: str
    source: str
    target: str
    label: str = ""
    # Routing style (smart-orthogonal, straight, bezier, ...); cosmetic only
    type: Optional[str] = None
    routing: Optional[Routing] = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, index: int = 0) -> 'Connection':
        if not isinstance(data, dict):
            raise ValidationError(f"Each connection must be an object, got {type(data).__name__}.")
        for key in ("source", "target"):
            if not isinstance(data.get(key), str) or not data[key]:
                raise ValidationError(f"Connection #{index} requires a non-empty string '{key}'.")
        known = {"id", "source", "target", "label", "type", "routing"}
        routing = data.get("routing")
        return cls(
            id=str(data.get("id") or f"conn-{index}"),
            source=data["source"],
            target=data["target"],
            label=str(data.get("label") or ""),
            type=data.get("type") or None,
            routing=Routing.from_dict(routing) if isinstance(routing, dict) else None,
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
        }
        if self.label:
            out["label"] = self.label
        if self.type:
            out["type"] = self.type
        if self.routing is not None:
            out["routing"] = self.routing.to_dict()
        out.update(self.extra)
        return out


@dataclass
class Viewport:
    """Pan/zoom state; carried through layout untouched."""
    x: float = 0
    y: float = 0
    zoom: float = 1

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "zoom": self.zoom}


@dataclass
class Diagram:
    """Top-level aggregate of nodes, containers and connections."""
    nodes: list[Node] = field(default_factory=list)
    containers: list[Container] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    viewport: Viewport = field(default_factory=Viewport)
    metadata: dict[str, Any] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)

    # ----- lookup helpers -----

    def entities(self) -> Iterator[Node]:
        """Nodes followed by containers."""
        yield from self.nodes
        yield from self.containers

    def entity(self, entity_id: str) -> Optional[Node]:
        for ent in self.entities():
            if ent.id == entity_id:
                return ent
        return None

    def entity_map(self) -> dict[str, Node]:
        """Id lookup table; the first entity wins on duplicate ids, like ``entity()``."""
        by_id: dict[str, Node] = {}
        for ent in self.entities():
            by_id.setdefault(ent.id, ent)
        return by_id

    def container_ids(self) -> set[str]:
        return {c.id for c in self.containers}

    def children_of(self, container_id: str) -> list[Node]:
        """Nodes and containers whose parent is *container_id* (input order)."""
        return [e for e in self.entities() if e.parent_container == container_id]

    def children_index(self) -> dict[str, list[Node]]:
        """Children grouped by parent id, each list in input order."""
        index: dict[str, list[Node]] = {}
        for ent in self.entities():
            if ent.parent_container:
                index.setdefault(ent.parent_container, []).append(ent)
        return index

    def top_level(self) -> list[Node]:
        return [e for e in self.entities() if not e.parent_container]

    def depth_of(self, entity_id: str, by_id: Optional[dict[str, Node]] = None) -> int:
        """Nesting depth: 0 for top-level entities.

        Pass a prebuilt *by_id* from ``entity_map()`` when calling once per entity.
        """
        by_id = by_id if by_id is not None else self.entity_map()
        depth = 0
        seen: set[str] = set()
        current = by_id.get(entity_id)
        while current is not None and current.parent_container:
            if current.id in seen:
                break
            seen.add(current.id)
            depth += 1
            current = by_id.get(current.parent_container)
        return depth

    def absolute_position(self, entity_id: str, by_id: Optional[dict[str, Node]] = None) -> Point:
        """Global top-left corner, summing parent offsets up the chain."""
        by_id = by_id if by_id is not None else self.entity_map()
        x = y = 0.0
        seen: set[str] = set()
        current = by_id.get(entity_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            if current.position is not None:
                x += current.position.x
                y += current.position.y
            current = by_id.get(current.parent_container) if current.parent_container else None
        return Point(x, y)

    def absolute_bounds(self, entity_id: str, by_id: Optional[dict[str, Node]] = None) -> Optional[CellBounds]:
        by_id = by_id if by_id is not None else self.entity_map()
        ent = by_id.get(entity_id)
        if ent is None:
            return None
        pos = self.absolute_position(entity_id, by_id)
        size = ent.size or Size(0, 0)
        return CellBounds(pos.x, pos.y, size.width, size.height)

    # ----- JSON conversion -----

    @classmethod
    def from_dict(cls, data: Any) -> 'Diagram':
        """Build a diagram from the collaborator's camelCase JSON."""
        if not isinstance(data, dict):
            raise ValidationError(f"'diagram' must be an object, got {type(data).__name__}.")
        connections = data.get("connections")
        if connections is None:
            connections = data.get("edges", [])
        for key, value in (
            ("nodes", data.get("nodes", [])),
            ("containers", data.get("containers", [])),
            ("connections", connections),
        ):
            if not isinstance(value, list):
                raise ValidationError(f"'{key}' must be a list, got {type(value).__name__}.")
        viewport = data.get("viewport") or {}
        if not isinstance(viewport, dict):
            raise ValidationError(f"'viewport' must be an object, got {type(viewport).__name__}.")
        known = {"nodes", "containers", "connections", "edges", "viewport", "metadata"}
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes", [])],
            containers=[Container.from_dict(c) for c in data.get("containers", [])],
            connections=[Connection.from_dict(c, i) for i, c in enumerate(connections)],
            viewport=_viewport_from(viewport),
            metadata=dict(data.get("metadata") or {}),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "nodes": [n.to_dict() for n in self.nodes],
            "containers": [c.to_dict() for c in self.containers],
            "connections": [c.to_dict() for c in self.connections],
            "viewport": self.viewport.to_dict(),
            "metadata": self.metadata,
        }
        out.update(self.extra)
        return out


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _point_from(value: Any) -> Optional[Point]:
    if not isinstance(value, dict):
        return None
    try:
        return Point(float(value["x"]), float(value["y"]))
    except (KeyError, TypeError, ValueError):
        raise ValidationError(f"'position' must have numeric 'x' and 'y', got {value!r}.") from None


def _size_from(value: Any) -> Optional[Size]:
    if not isinstance(value, dict):
        return None
    try:
        return Size(float(value["width"]), float(value["height"]))
    except (KeyError, TypeError, ValueError):
        raise ValidationError(f"'size' must have numeric 'width' and 'height', got {value!r}.") from None


def _int_from(value: Any, key: str) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{key}' must be an integer, got {value!r}.") from None


def _viewport_from(value: dict[str, Any]) -> Viewport:
    try:
        return Viewport(
            x=float(value.get("x", 0)),
            y=float(value.get("y", 0)),
            zoom=float(value.get("zoom", 1)),
        )
    except (TypeError, ValueError):
        raise ValidationError(f"'viewport' must have numeric 'x', 'y' and 'zoom', got {value!r}.") from None
