"""
Layout configuration.

A single immutable ``LayoutConfig`` is built once per layout call by
merging the caller's options over the documented defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from arch_layout.models import Point
from arch_layout.strategies import STRATEGIES
from arch_layout.validation import (
    LayoutConfigError,
    ValidationError,
    validate_algorithm,
    validate_bool,
    validate_dict,
    validate_direction,
    validate_int,
    validate_non_negative_number,
    validate_number,
    validate_positive_number,
    validate_spacing,
)


@dataclass(frozen=True)
class SpacingConfig:
    node_spacing: float = 100      # Between siblings in a rank / grid cell gap
    rank_spacing: float = 150      # Between layers / tree levels
    container_padding: float = 40  # Inside containers, around children


@dataclass(frozen=True)
class ConstraintConfig:
    preserve_user_positions: bool = False
    respect_container_bounds: bool = True
    minimize_edge_crossings: bool = True
    align_similar_nodes: bool = True


@dataclass(frozen=True)
class SimulationConfig:
    """Force-directed / organic tuning."""
    iterations: int = 100
    edge_length: float = 150
    repulsion: float = 1000
    attraction: float = 0.1
    seed: Optional[int] = None
    cluster_passes: int = 1


@dataclass(frozen=True)
class CollisionConfig:
    margin: float = 20
    max_rounds: int = 10


@dataclass(frozen=True)
class LayoutConfig:
    """Parameters governing a single layout run."""
    # None means "pick one from the diagram's shape"
    algorithm: Optional[str] = None
    direction: str = "TB"
    spacing: SpacingConfig = field(default_factory=SpacingConfig)
    constraints: ConstraintConfig = field(default_factory=ConstraintConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    collision: CollisionConfig = field(default_factory=CollisionConfig)
    # Viewport center used for seeding and the root-container ring
    center: Point = field(default_factory=lambda: Point(400, 300))

    def with_algorithm(self, algorithm: str) -> 'LayoutConfig':
        return replace(self, algorithm=algorithm)

    @classmethod
    def from_dict(cls, options: Optional[dict[str, Any]] = None) -> 'LayoutConfig':
        """Merge camelCase layout options over the defaults.

        Accepts the shape used by layout tool callers::

            {"algorithm": "tree", "direction": "LR",
             "spacing": {"nodeSpacing": 80, "rankSpacing": 120, "containerPadding": 30},
             "constraints": {"preserveUserPositions": true, ...},
             "optimization": {"iterations": 200, "edgeLength": 150,
                              "repulsion": 1000, "attraction": 0.1, "seed": 7},
             "collision": {"margin": 20, "maxRounds": 10}}

        A plain number for ``spacing`` is taken as the node spacing.

        Raises:
            LayoutConfigError: On any unknown algorithm or invalid value.
        """
        opts = options or {}
        try:
            validate_dict(opts, "options")
            algorithm = validate_algorithm(opts.get("algorithm"), set(STRATEGIES))
            direction = validate_direction(opts.get("direction", "TB"))

            raw_spacing = opts.get("spacing", {})
            if isinstance(raw_spacing, (int, float)) and not isinstance(raw_spacing, bool):
                raw_spacing = {"nodeSpacing": raw_spacing}
            raw_spacing = validate_dict(raw_spacing, "spacing")
            base_spacing = SpacingConfig()
            spacing = SpacingConfig(
                node_spacing=validate_spacing(
                    raw_spacing.get("nodeSpacing", base_spacing.node_spacing), "spacing.nodeSpacing"),
                rank_spacing=validate_spacing(
                    raw_spacing.get("rankSpacing", base_spacing.rank_spacing), "spacing.rankSpacing"),
                container_padding=validate_non_negative_number(
                    raw_spacing.get("containerPadding", base_spacing.container_padding),
                    "spacing.containerPadding"),
            )

            raw_constraints = validate_dict(opts.get("constraints", {}), "constraints")
            base_constraints = ConstraintConfig()
            constraints = ConstraintConfig(**{
                attr: validate_bool(raw_constraints.get(key, getattr(base_constraints, attr)),
                                    f"constraints.{key}")
                for attr, key in (
                    ("preserve_user_positions", "preserveUserPositions"),
                    ("respect_container_bounds", "respectContainerBounds"),
                    ("minimize_edge_crossings", "minimizeEdgeCrossings"),
                    ("align_similar_nodes", "alignSimilarNodes"),
                )
            })

            raw_sim = validate_dict(opts.get("optimization", {}), "optimization")
            base_sim = SimulationConfig()
            seed = raw_sim.get("seed", base_sim.seed)
            simulation = SimulationConfig(
                iterations=validate_int(
                    raw_sim.get("iterations", base_sim.iterations), "optimization.iterations",
                    min_val=0, max_val=10_000),
                edge_length=validate_positive_number(
                    raw_sim.get("edgeLength", base_sim.edge_length), "optimization.edgeLength"),
                repulsion=validate_non_negative_number(
                    raw_sim.get("repulsion", base_sim.repulsion), "optimization.repulsion"),
                attraction=validate_non_negative_number(
                    raw_sim.get("attraction", base_sim.attraction), "optimization.attraction"),
                seed=None if seed is None else validate_int(seed, "optimization.seed"),
                cluster_passes=validate_int(
                    raw_sim.get("clusterPasses", base_sim.cluster_passes),
                    "optimization.clusterPasses", min_val=0, max_val=100),
            )

            raw_collision = validate_dict(opts.get("collision", {}), "collision")
            base_collision = CollisionConfig()
            collision = CollisionConfig(
                margin=validate_non_negative_number(
                    raw_collision.get("margin", base_collision.margin), "collision.margin"),
                max_rounds=validate_int(
                    raw_collision.get("maxRounds", base_collision.max_rounds),
                    "collision.maxRounds", min_val=0, max_val=1000),
            )

            raw_center = opts.get("center")
            center = Point(400, 300)
            if raw_center is not None:
                raw_center = validate_dict(raw_center, "center")
                center = Point(
                    validate_number(raw_center.get("x"), "center.x"),
                    validate_number(raw_center.get("y"), "center.y"),
                )
        except LayoutConfigError:
            raise
        except ValidationError as exc:
            raise LayoutConfigError(exc.message) from exc

        return cls(
            algorithm=algorithm,
            direction=direction,
            spacing=spacing,
            constraints=constraints,
            simulation=simulation,
            collision=collision,
            center=center,
        )
