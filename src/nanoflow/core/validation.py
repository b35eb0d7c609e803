"""
Validator - Pre-run checks on a workflow graph.

Two checks run before anything executes:
- cycle detection (a cyclic graph cannot be ordered)
- required inputs (nodes that consume something must be connected)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from nanoflow.core.errors import CyclicGraphError, UnconnectedInputError, ValidationError
from nanoflow.core.node_types import NodeRegistry

if TYPE_CHECKING:
    from nanoflow.core.graph import NodeGraph, NodeId


@dataclass
class ValidationResult:
    """Outcome of validating a graph."""
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return [str(e) for e in self.errors]

    def summary(self) -> str:
        """All error messages joined into one line."""
        return "; ".join(self.messages)


def find_cycle(graph: NodeGraph) -> bool:
    """
    Check the graph for a directed cycle.

    Iterative depth-first search from every unvisited node, keeping an
    explicit stack of (node id, next edge index) frames so deep graphs
    don't exhaust the interpreter stack.
    """
    successors: dict[NodeId, list[NodeId]] = {nid: [] for nid in graph.nodes}
    for conn in graph.connections:
        if conn.source.node_id in successors:
            successors[conn.source.node_id].append(conn.target.node_id)

    visited: set[NodeId] = set()
    on_stack: set[NodeId] = set()

    for root in successors:
        if root in visited:
            continue

        visited.add(root)
        on_stack.add(root)
        stack: list[tuple[NodeId, int]] = [(root, 0)]

        while stack:
            node_id, edge_index = stack[-1]
            edges = successors.get(node_id, [])

            if edge_index >= len(edges):
                stack.pop()
                on_stack.discard(node_id)
                continue

            stack[-1] = (node_id, edge_index + 1)
            target = edges[edge_index]

            if target in on_stack:
                return True
            if target not in visited:
                visited.add(target)
                on_stack.add(target)
                stack.append((target, 0))

    return False


def validate(graph: NodeGraph, registry: NodeRegistry | None = None) -> ValidationResult:
    """
    Validate a workflow graph.

    A cycle ends validation immediately with a single error. Otherwise
    every node that declares inputs must have at least one incoming
    connection, unless its kind can run standalone with its current
    config; all such problems are reported together.
    """
    if find_cycle(graph):
        return ValidationResult(valid=False, errors=[CyclicGraphError()])

    registry = registry or NodeRegistry.instance()
    errors: list[ValidationError] = []
    connected_targets = {conn.target.node_id for conn in graph.connections}

    for node in graph.node_list():
        # Pure sources need nothing
        if not node.inputs:
            continue

        definition = registry.get(node.kind)
        if definition is not None and definition.can_run_unconnected(node.config):
            continue

        if node.id not in connected_targets:
            errors.append(UnconnectedInputError(node.kind.value, node.id))

    return ValidationResult(valid=not errors, errors=errors)
