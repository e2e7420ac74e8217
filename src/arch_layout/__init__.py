"""
arch-layout: automatic geometry for architecture diagrams.

Turns an unpositioned graph of nodes, containers and connections into
sized, positioned boxes with routing hints and layout-quality metrics.
"""

from arch_layout.config import LayoutConfig
from arch_layout.engine import LayoutResult, layout
from arch_layout.metrics import LayoutMetrics
from arch_layout.models import Connection, Container, Diagram, Node, Point, Size
from arch_layout.strategies import STRATEGIES
from arch_layout.validation import LayoutConfigError, ValidationError, validate_diagram

__all__ = [
    "STRATEGIES",
    "Connection",
    "Container",
    "Diagram",
    "LayoutConfig",
    "LayoutConfigError",
    "LayoutMetrics",
    "LayoutResult",
    "Node",
    "Point",
    "Size",
    "ValidationError",
    "layout",
    "validate_diagram",
]
