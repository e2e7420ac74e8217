"""
Input validation for the layout engine.

Provides reusable validators that produce clear error messages for every
layout option received from agents / LLM callers, plus the referential
integrity check that diagram producers run before handing a diagram over.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from arch_layout.models import Diagram


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class LayoutConfigError(ValidationError):
    """Raised for an unusable layout configuration (e.g. unknown algorithm)."""


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_int(
    value: Any,
    field_name: str,
    *,
    min_val: int | None = None,
    max_val: int | None = None,
) -> int:
    """Validate an integer value and optional range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be an integer, got {type(value).__name__}."
        )
    if min_val is not None and value < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {value}."
        )
    if max_val is not None and value > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {value}."
        )
    return value


def validate_bool(value: Any, field_name: str) -> bool:
    """Ensure *value* is a boolean."""
    if not isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a boolean, got {type(value).__name__}."
        )
    return value


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().upper()
    if normalized not in {a.upper() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_dict(value: Any, field_name: str) -> dict:
    """Ensure *value* is a dict."""
    if not isinstance(value, dict):
        raise ValidationError(
            f"'{field_name}' must be a dict/object, got {type(value).__name__}."
        )
    return value


def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate that a number is positive (> 0)."""
    return validate_number(value, field_name, min_val=0.001)


def validate_non_negative_number(value: Any, field_name: str) -> float:
    """Validate that a number is >= 0."""
    return validate_number(value, field_name, min_val=0)


def validate_spacing(value: Any, field_name: str) -> float:
    """Validate spacing parameters (must be > 0)."""
    return validate_number(value, field_name, min_val=1)


# ---------------------------------------------------------------------------
# Layout option validators
# ---------------------------------------------------------------------------

_VALID_DIRECTIONS = {"TB", "BT", "LR", "RL"}

# Pseudo-algorithm asking the engine to pick one from the diagram's shape
AUTO_ALGORITHM = "auto"


def validate_direction(value: Any) -> str:
    """Validate a layout direction (TB, BT, LR, RL)."""
    return validate_enum(value, "direction", _VALID_DIRECTIONS)


def validate_algorithm(value: Any, allowed: set[str]) -> str | None:
    """Validate an algorithm name; ``None`` / ``"auto"`` mean auto-select.

    Unknown names are a configuration error, never silently replaced.
    """
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise LayoutConfigError(
            f"'algorithm' must be a non-empty string, got {value!r}."
        )
    normalized = value.strip().lower()
    if normalized == AUTO_ALGORITHM:
        return None
    if normalized not in allowed:
        choices = ", ".join(sorted(allowed | {AUTO_ALGORITHM}))
        raise LayoutConfigError(
            f"Unsupported layout algorithm '{value}'. Valid algorithms: {choices}."
        )
    return normalized


# ---------------------------------------------------------------------------
# Referential integrity
# ---------------------------------------------------------------------------

def invalid_parent_refs(diagram: 'Diagram') -> dict[str, str]:
    """Map entity id → reason for every unusable ``parent_container``.

    A parent is unusable when it does not exist, is not a container, or
    sits on a containment cycle.
    """
    containers = {c.id: c for c in diagram.containers}
    node_ids = {n.id for n in diagram.nodes}
    problems: dict[str, str] = {}

    for ent in diagram.entities():
        parent = ent.parent_container
        if not parent:
            continue
        if parent == ent.id:
            problems[ent.id] = f"'{ent.id}' is its own parent container"
        elif parent not in containers:
            if parent in node_ids:
                problems[ent.id] = f"parent '{parent}' of '{ent.id}' is a node, not a container"
            else:
                problems[ent.id] = f"parent container '{parent}' of '{ent.id}' does not exist"

    # Containment cycles among containers (A in B, B in A)
    for cid, container in containers.items():
        if cid in problems:
            continue
        seen = {cid}
        current = container.parent_container
        while current and current in containers:
            if current == cid:
                problems[cid] = f"container '{cid}' is part of a containment cycle"
                break
            if current in seen:
                break
            seen.add(current)
            current = containers[current].parent_container
    return problems


def validate_diagram(diagram: 'Diagram') -> list[str]:
    """Return human-readable referential-integrity issues (empty when valid).

    Checks duplicate ids, connection endpoints that reference unknown
    entities, and unusable parent containers.  The layout engine itself is
    lenient about all of these.
    """
    issues: list[str] = []
    seen: set[str] = set()
    for ent in diagram.entities():
        if ent.id in seen:
            issues.append(f"Duplicate id '{ent.id}'.")
        seen.add(ent.id)

    for conn in diagram.connections:
        for end in ("source", "target"):
            ref = getattr(conn, end)
            if ref not in seen:
                issues.append(
                    f"Connection '{conn.id}' {end} '{ref}' does not reference an existing node or container."
                )

    for reason in invalid_parent_refs(diagram).values():
        issues.append(reason[0].upper() + reason[1:] + ".")
    return issues
