"""
Adjacency structure used by the layering, tree and cluster algorithms.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from arch_layout.models import Connection


@dataclass
class Adjacency:
    """In/out neighbour ids of one node (duplicates kept, one per edge)."""
    incoming: list[str] = field(default_factory=list)
    outgoing: list[str] = field(default_factory=list)


Graph = dict[str, Adjacency]


def build_graph(node_ids: Iterable[str], connections: Iterable[Connection]) -> Graph:
    """Build per-node incoming/outgoing lists.

    Edges whose endpoints are not in *node_ids* are silently ignored so
    that partially-formed input still layers.  Insertion order follows
    *node_ids*, which keeps every consumer deterministic.
    """
    graph: Graph = {nid: Adjacency() for nid in node_ids}
    for conn in connections:
        if conn.source in graph and conn.target in graph:
            graph[conn.source].outgoing.append(conn.target)
            graph[conn.target].incoming.append(conn.source)
    return graph


def degree(graph: Graph, node_id: str) -> int:
    adj = graph.get(node_id)
    if adj is None:
        return 0
    return len(adj.incoming) + len(adj.outgoing)


def find_roots(graph: Graph) -> list[str]:
    """Nodes with zero in-degree, in graph order."""
    return [nid for nid, adj in graph.items() if not adj.incoming]


def connected_components(graph: Graph) -> list[list[str]]:
    """Weakly connected components via BFS (edges treated as undirected)."""
    visited: set[str] = set()
    components: list[list[str]] = []

    for start in graph:
        if start in visited:
            continue
        visited.add(start)
        component = [start]
        queue = deque([start])
        while queue:
            current = queue.popleft()
            adj = graph[current]
            for neighbour in adj.outgoing + adj.incoming:
                if neighbour not in visited:
                    visited.add(neighbour)
                    component.append(neighbour)
                    queue.append(neighbour)
        components.append(component)

    return components


def lift_connections(
    connections: Iterable[Connection],
    top_of: Callable[[str], Optional[str]],
) -> list[Connection]:
    """Re-target connections onto top-level ancestors.

    *top_of* maps an entity id to the id of its top-level ancestor (itself
    when already top level) or ``None`` when the id is unknown.  Edges that
    collapse into a self-loop, or have an unknown end, are dropped.
    """
    lifted: list[Connection] = []
    for conn in connections:
        src = top_of(conn.source)
        tgt = top_of(conn.target)
        if src is None or tgt is None or src == tgt:
            continue
        lifted.append(Connection(id=conn.id, source=src, target=tgt, label=conn.label))
    return lifted
