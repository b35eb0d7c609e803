"""
Input Resolver - Gathers a node's input values for one run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

from nanoflow.core.data_types import OutputBundle, PortKind

if TYPE_CHECKING:
    from nanoflow.core.graph import Connection, Node, NodeGraph, NodeId, Port


def resolve_inputs(
    node: Node,
    graph: NodeGraph,
    results: Mapping[NodeId, Any],
) -> dict[str, Any]:
    """
    Map each bound input port of `node` to the value feeding it.

    Values come from `results`, the outputs already produced this run.
    Ports with no connection, or whose source has not produced a result,
    are left out; executors decide whether that is an error.

    Returns:
        Input values keyed by port name
    """
    inputs: dict[str, Any] = {}

    for port in node.inputs:
        conn = graph.get_input_connection(node.id, port.id)
        if conn is None or conn.source.node_id not in results:
            continue

        value = _select_output(results[conn.source.node_id], graph, conn, port)
        inputs[port.name] = _coerce_to_port(value, port)

    return inputs


def _select_output(result: Any, graph: NodeGraph, conn: Connection, port: Port) -> Any:
    """Pick the sub-result a connection refers to out of a bundle."""
    if not isinstance(result, OutputBundle):
        return result

    source = graph.get_node(conn.source.node_id)
    source_port = source.get_port(conn.source.port_id) if source else None
    if source_port is not None and source_port.name in result:
        return result.get(source_port.name)
    if port.name in result:
        return result.get(port.name)
    return result


def _coerce_to_port(value: Any, port: Port) -> Any:
    # An array feeding a scalar port contributes its first element
    if port.kind in (PortKind.IMAGE, PortKind.TEXT, PortKind.STYLE) and isinstance(value, list):
        return value[0] if value else None
    return value
