"""End-to-end tests for the layout pipeline."""

import copy
import logging
import math

import pytest

from arch_layout import layout
from arch_layout.config import LayoutConfig
from arch_layout.models import CellBounds, Connection, Container, Diagram, Node, Point
from arch_layout.sizing import CONTAINER_BOUNDS, NODE_BOUNDS
from arch_layout.validation import LayoutConfigError, ValidationError


def _gateway_data() -> dict:
    return {
        "nodes": [
            {"id": "gateway", "type": "api", "label": "API Gateway"},
            {"id": "serviceA", "type": "service", "label": "Orders"},
            {"id": "serviceB", "type": "service", "label": "Payments"},
            {"id": "db", "type": "database", "label": "Postgres"},
        ],
        "connections": [
            {"id": "c1", "source": "gateway", "target": "serviceA"},
            {"id": "c2", "source": "gateway", "target": "serviceB"},
            {"id": "c3", "source": "serviceA", "target": "db"},
            {"id": "c4", "source": "serviceB", "target": "db"},
        ],
        "viewport": {"x": 0, "y": 0, "zoom": 1},
        "metadata": {"name": "Shop"},
    }


def _cloud_diagram() -> Diagram:
    """A web node talking to services inside nested containers."""
    return Diagram(
        nodes=[
            Node(id="web", type="ui", label="Web App"),
            Node(id="orders", type="service", label="Orders", parent_container="subnet"),
            Node(id="billing", type="service", label="Billing", parent_container="subnet"),
            Node(id="queue", type="queue", label="Events SQS", parent_container="vpc"),
            Node(id="db", type="database", label="Orders DB", parent_container="vpc"),
        ],
        containers=[
            Container(id="vpc", label="Production VPC"),
            Container(id="subnet", label="Private subnet", parent_container="vpc"),
        ],
        connections=[
            Connection(id="e1", source="web", target="orders"),
            Connection(id="e2", source="orders", target="db"),
            Connection(id="e3", source="billing", target="queue"),
        ],
    )


def _assert_contained(diagram: Diagram, padding: float = 40) -> None:
    for ent in diagram.entities():
        if not ent.parent_container:
            continue
        parent = diagram.entity(ent.parent_container)
        area = CellBounds(0, 0, parent.size.width, parent.size.height)
        assert area.contains(ent.bounds(), inset=padding), ent.id


def _positions(diagram: Diagram) -> dict[str, Point]:
    return {e.id: e.position for e in diagram.entities()}


# ===================================================================
# Scenarios
# ===================================================================

class TestGatewayScenario:
    def test_three_ranks_top_to_bottom(self) -> None:
        result = layout(_gateway_data(), {"algorithm": "hierarchical", "direction": "TB"})
        d = result.diagram
        y = {n.id: n.position.y for n in d.nodes}
        assert y["gateway"] < y["serviceA"] < y["db"]
        assert y["serviceA"] == y["serviceB"]
        assert result.algorithm == "hierarchical"
        assert result.metrics.edge_crossings == 0
        assert result.metrics.total_nodes == 4
        assert result.metrics.total_connections == 4

    def test_connections_get_default_routing(self) -> None:
        d = layout(_gateway_data(), {"algorithm": "hierarchical"}).diagram
        for conn in d.connections:
            assert conn.type == "smart-orthogonal"
            assert conn.routing.algorithm == "orthogonal"
            assert conn.routing.jetty_length == 20

    def test_to_dict(self) -> None:
        out = layout(_gateway_data(), {"algorithm": "hierarchical"}).to_dict()
        assert set(out) == {"diagram", "metrics", "algorithm", "bounds"}
        assert out["diagram"]["metadata"] == {"name": "Shop"}
        assert out["diagram"]["viewport"] == {"x": 0.0, "y": 0.0, "zoom": 1.0}
        node = out["diagram"]["nodes"][0]
        assert set(node["position"]) == {"x", "y"}
        assert set(node["size"]) == {"width", "height"}
        assert node["zIndex"] == 1
        assert out["metrics"]["edgeCrossings"] == 0

    def test_bounds_cover_all_nodes(self) -> None:
        result = layout(_gateway_data(), {"algorithm": "hierarchical"})
        for node in result.diagram.nodes:
            assert result.bounds.contains(node.bounds())


# ===================================================================
# Purity & determinism
# ===================================================================

class TestPurity:
    def test_input_mapping_not_mutated(self) -> None:
        data = _gateway_data()
        snapshot = copy.deepcopy(data)
        layout(data, {"algorithm": "grid"})
        assert data == snapshot

    def test_input_diagram_not_mutated(self) -> None:
        d = _cloud_diagram()
        layout(d, {"algorithm": "hierarchical"})
        assert all(e.position is None for e in d.entities())
        assert all(e.size is None for e in d.entities())
        assert all(c.routing is None for c in d.connections)

    @pytest.mark.parametrize("algorithm", ["hierarchical", "grid", "circular", "tree", "layered"])
    def test_deterministic(self, algorithm: str) -> None:
        first = layout(_cloud_diagram(), {"algorithm": algorithm}).to_dict()
        second = layout(_cloud_diagram(), {"algorithm": algorithm}).to_dict()
        assert first == second

    @pytest.mark.parametrize("algorithm", ["force-directed", "organic"])
    def test_seeded_simulation_deterministic(self, algorithm: str) -> None:
        options = {"algorithm": algorithm, "optimization": {"seed": 11}}
        first = layout(_cloud_diagram(), options).to_dict()
        second = layout(_cloud_diagram(), options).to_dict()
        assert first == second


# ===================================================================
# Invariants
# ===================================================================

class TestInvariants:
    @pytest.mark.parametrize("algorithm", [
        "hierarchical", "force-directed", "circular", "grid", "organic", "tree", "layered",
    ])
    def test_every_entity_positioned_and_bounded(self, algorithm: str) -> None:
        options = {"algorithm": algorithm, "optimization": {"seed": 3}}
        d = layout(_cloud_diagram(), options).diagram
        for node in d.nodes:
            assert math.isfinite(node.position.x) and math.isfinite(node.position.y)
            assert NODE_BOUNDS.min_width <= node.size.width <= NODE_BOUNDS.max_width
            assert NODE_BOUNDS.min_height <= node.size.height <= NODE_BOUNDS.max_height
        for container in d.containers:
            assert container.size.width >= CONTAINER_BOUNDS.min_width
            assert container.size.height >= CONTAINER_BOUNDS.min_height

    @pytest.mark.parametrize("algorithm", [
        "hierarchical", "force-directed", "circular", "grid", "organic", "tree", "layered",
    ])
    def test_children_inside_containers(self, algorithm: str) -> None:
        options = {"algorithm": algorithm, "optimization": {"seed": 5}}
        _assert_contained(layout(_cloud_diagram(), options).diagram)

    def test_z_index_follows_depth(self) -> None:
        d = layout(_cloud_diagram(), {"algorithm": "grid"}).diagram
        z = {e.id: e.z_index for e in d.entities()}
        assert z["web"] == z["vpc"] == 1
        assert z["subnet"] == z["db"] == 2
        assert z["orders"] == 3

    def test_nested_edges_lifted_to_top_level(self) -> None:
        """web → orders ranks the web node above the VPC that holds orders."""
        d = layout(_cloud_diagram(), {"algorithm": "hierarchical"}).diagram
        web = d.entity("web")
        vpc = d.entity("vpc")
        assert web.position.y + web.size.height < vpc.position.y

    def test_grid_has_no_top_level_overlaps(self) -> None:
        d = layout(_gateway_data(), {"algorithm": "grid"}).diagram
        boxes = [n.bounds() for n in d.nodes]
        for i in range(len(boxes)):
            for j in range(i + 1, len(boxes)):
                assert not boxes[i].intersects(boxes[j], margin=20)

    def test_similar_nodes_aligned(self) -> None:
        d = layout(_gateway_data(), {"algorithm": "hierarchical"}).diagram
        a, b = d.entity("serviceA"), d.entity("serviceB")
        assert a.size == b.size

    def test_alignment_can_be_disabled(self) -> None:
        data = _gateway_data()
        data["nodes"][2]["label"] = "Payments and refunds processing service"
        options = {"algorithm": "hierarchical", "constraints": {"alignSimilarNodes": False}}
        d = layout(data, options).diagram
        assert d.entity("serviceA").size != d.entity("serviceB").size


# ===================================================================
# Bounding
# ===================================================================

def _isolated_data(count: int = 6) -> dict:
    return {"nodes": [{"id": f"n{i}", "label": f"Worker {i}"} for i in range(count)]}


def _assert_bounded(diagram: Diagram, config: LayoutConfig) -> None:
    """Top-level boxes stay inside a region scaled by entity count and spacing."""
    top = diagram.top_level()
    count = len(list(diagram.entities()))
    largest = max(max(e.size.width, e.size.height) for e in top)
    spacing = config.spacing.node_spacing + config.spacing.rank_spacing
    limit = count * (spacing + largest) + max(abs(config.center.x), abs(config.center.y))
    for ent in top:
        assert abs(ent.position.x) <= limit, ent.id
        assert abs(ent.position.y) <= limit, ent.id


class TestBounding:
    ALGORITHMS = [
        "hierarchical", "force-directed", "circular", "grid", "organic", "tree", "layered",
    ]

    @pytest.mark.parametrize("algorithm", ALGORITHMS)
    def test_gateway_bounded(self, algorithm: str) -> None:
        options = {"algorithm": algorithm, "optimization": {"seed": 7}}
        d = layout(_gateway_data(), options).diagram
        _assert_bounded(d, LayoutConfig.from_dict(options))

    @pytest.mark.parametrize("algorithm", ALGORITHMS)
    def test_nested_bounded(self, algorithm: str) -> None:
        options = {"algorithm": algorithm, "optimization": {"seed": 7}}
        d = layout(_cloud_diagram(), options).diagram
        _assert_bounded(d, LayoutConfig.from_dict(options))

    @pytest.mark.parametrize("algorithm", ["force-directed", "organic"])
    def test_long_simulation_does_not_drift(self, algorithm: str) -> None:
        options = {"algorithm": algorithm, "optimization": {"seed": 1, "iterations": 2000}}
        cfg = LayoutConfig.from_dict(options)
        _assert_bounded(layout(_gateway_data(), options).diagram, cfg)
        _assert_bounded(layout(_isolated_data(), options).diagram, cfg)


# ===================================================================
# Constraints
# ===================================================================

class TestPreserveUserPositions:
    def test_pinned_node_keeps_position(self) -> None:
        data = _gateway_data()
        data["nodes"][0]["position"] = {"x": 1000, "y": -500}
        options = {"algorithm": "grid", "constraints": {"preserveUserPositions": True}}
        d = layout(data, options).diagram
        assert d.entity("gateway").position == Point(1000, -500)

    def test_positions_replaced_by_default(self) -> None:
        data = _gateway_data()
        data["nodes"][0]["position"] = {"x": 1000, "y": -500}
        d = layout(data, {"algorithm": "grid"}).diagram
        assert d.entity("gateway").position != Point(1000, -500)


# ===================================================================
# Edge cases & errors
# ===================================================================

class TestEdgeCases:
    def test_empty_diagram(self) -> None:
        result = layout({"nodes": [], "connections": []})
        assert result.diagram.nodes == []
        assert result.metrics.edge_crossings == 0
        assert result.metrics.total_nodes == 0
        assert result.bounds.width == 0

    def test_containers_only_diagram_laid_out(self) -> None:
        data = {"containers": [{"id": "vpc", "label": "VPC"}, {"id": "edge", "label": "Edge"}]}
        result = layout(data, {"algorithm": "grid"})
        containers = result.diagram.containers
        for container in containers:
            assert container.position is not None, container.id
            assert container.size.width >= CONTAINER_BOUNDS.min_width
            assert container.size.height >= CONTAINER_BOUNDS.min_height
            assert container.z_index == 1
        assert not containers[0].bounds().intersects(containers[1].bounds())
        assert result.algorithm == "grid"
        assert result.bounds.width > 0

    def test_nested_empty_containers_laid_out(self) -> None:
        data = {"containers": [
            {"id": "cloud", "label": "Cloud"},
            {"id": "vpc", "label": "VPC", "parentContainer": "cloud"},
        ]}
        result = layout(data)
        assert result.algorithm == "hierarchical"
        assert all(c.position is not None for c in result.diagram.containers)
        assert result.diagram.entity("vpc").z_index == 2
        _assert_contained(result.diagram)

    def test_single_node(self) -> None:
        result = layout({"nodes": [{"id": "only", "label": "Only"}]}, {"algorithm": "force-directed"})
        node = result.diagram.nodes[0]
        assert node.position is not None
        assert result.metrics.average_edge_length == 0

    def test_dangling_connection_tolerated(self) -> None:
        data = _gateway_data()
        data["connections"].append({"id": "bad", "source": "db", "target": "ghost"})
        result = layout(data, {"algorithm": "hierarchical"})
        assert result.metrics.total_connections == 5
        assert result.diagram.connections[-1].type == "smart-orthogonal"

    def test_invalid_parent_treated_as_top_level(self, caplog: pytest.LogCaptureFixture) -> None:
        data = {"nodes": [
            {"id": "a", "label": "A", "parentContainer": "missing"},
            {"id": "b", "label": "B"},
        ]}
        with caplog.at_level(logging.WARNING, logger="arch-layout"):
            d = layout(data, {"algorithm": "grid"}).diagram
        assert d.entity("a").parent_container is None
        assert d.entity("a").z_index == 1
        assert "Ignoring parent of 'a'" in caplog.text

    def test_auto_selection_reported(self) -> None:
        result = layout(_gateway_data())
        assert result.algorithm == "circular"

    def test_auto_selection_with_containers(self) -> None:
        assert layout(_cloud_diagram(), {"algorithm": "auto"}).algorithm == "hierarchical"


class TestErrors:
    def test_unknown_algorithm_fails_fast(self) -> None:
        with pytest.raises(LayoutConfigError, match="Unsupported layout algorithm"):
            layout(_gateway_data(), {"algorithm": "spiral"})

    def test_unknown_algorithm_on_config_object(self) -> None:
        with pytest.raises(LayoutConfigError):
            layout(_gateway_data(), LayoutConfig(algorithm="spiral"))

    def test_unknown_algorithm_on_empty_diagram(self) -> None:
        with pytest.raises(LayoutConfigError):
            layout(Diagram(), {"algorithm": "spiral"})

    def test_malformed_diagram(self) -> None:
        with pytest.raises(ValidationError):
            layout({"nodes": [{"label": "no id"}]})
