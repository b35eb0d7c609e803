"""
Scheduler - Topological ordering of workflow nodes.

Order is derived from the connection set on every run; nodes carry no
ordering of their own.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from nanoflow.core.graph import Connection, Node, NodeId


def execution_order(nodes: Sequence[Node], connections: Sequence[Connection]) -> list[Node]:
    """
    Get nodes in topological order for execution.

    Kahn's algorithm: nodes with no dependencies come first, then nodes
    whose dependencies have all been emitted. Ties are broken by the
    order in which nodes become ready (insertion order for roots).

    Nodes on or behind a cycle are silently left out, so callers must
    validate the graph first.
    """
    in_degree: dict[NodeId, int] = {node.id: 0 for node in nodes}
    successors: dict[NodeId, list[NodeId]] = {node.id: [] for node in nodes}

    for conn in connections:
        source_id = conn.source.node_id
        target_id = conn.target.node_id
        # Dangling connections don't constrain anything
        if source_id not in in_degree or target_id not in in_degree:
            continue
        successors[source_id].append(target_id)
        in_degree[target_id] += 1

    by_id = {node.id: node for node in nodes}
    queue = deque(nid for nid, degree in in_degree.items() if degree == 0)
    order: list[Node] = []

    while queue:
        node_id = queue.popleft()
        order.append(by_id[node_id])

        for target_id in successors[node_id]:
            in_degree[target_id] -= 1
            if in_degree[target_id] == 0:
                queue.append(target_id)

    return order


def collect_dependencies(node_id: NodeId, connections: Sequence[Connection]) -> set[NodeId]:
    """Get every node `node_id` transitively depends on (excluding itself)."""
    upstream: set[NodeId] = set()
    to_visit = [node_id]

    while to_visit:
        current = to_visit.pop()
        for conn in connections:
            if conn.target.node_id == current:
                source_id = conn.source.node_id
                if source_id not in upstream:
                    upstream.add(source_id)
                    to_visit.append(source_id)

    upstream.discard(node_id)
    return upstream
