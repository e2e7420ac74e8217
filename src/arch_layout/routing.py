"""
Connection routing defaults.

Purely additive: fills in a routing style and hint on connections that
have none.  Node geometry is never read or written here.
"""

from __future__ import annotations

from typing import Iterable

from arch_layout.models import Connection, Routing

DEFAULT_CONNECTION_TYPE = "smart-orthogonal"


def optimize_connections(connections: Iterable[Connection]) -> int:
    """Give every unstyled connection a smart orthogonal route.

    A missing, empty or ``"default"`` type becomes ``smart-orthogonal``;
    a missing routing hint becomes orthogonal with obstacle avoidance,
    grid snapping and a 20 unit jetty.  Explicit choices are kept.

    Returns:
        Number of connections changed.
    """
    changed = 0
    for conn in connections:
        touched = False
        if not conn.type or conn.type == "default":
            conn.type = DEFAULT_CONNECTION_TYPE
            touched = True
        if conn.routing is None:
            conn.routing = Routing(
                algorithm="orthogonal",
                avoid_obstacles=True,
                grid_snap=True,
                jetty_length=20,
            )
            touched = True
        changed += touched
    return changed
