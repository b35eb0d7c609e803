"""
Node Graph Model - Core data structures for the node-based workflow.

This module defines the fundamental building blocks:
- Port: A typed input or output slot on a node
- Node: A single processing unit with ports, config and run status
- Connection: A link from an output port to an input port
- NodeGraph: The complete graph containing nodes and connections

The engine consumes a graph as a snapshot; it mutates node status and
results while running but never adds or removes nodes or connections.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, NewType
from uuid import uuid4

from nanoflow.core.data_types import PortKind
from nanoflow.core.errors import UnknownNodeKindError
from nanoflow.core.node_types import NodeKind, NodeRegistry, NodeType


NodeId = NewType("NodeId", str)
PortId = NewType("PortId", str)
ConnectionId = NewType("ConnectionId", str)


def new_node_id() -> NodeId:
    """Generate a new unique node ID."""
    return NodeId(uuid4().hex[:12])


def new_connection_id() -> ConnectionId:
    """Generate a new unique connection ID."""
    return ConnectionId(uuid4().hex[:12])


class NodeStatus(Enum):
    """Run status of a node."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class Point2D:
    """2D point for node positioning on the canvas."""
    x: float = 0.0
    y: float = 0.0


@dataclass(frozen=True)
class Port:
    """
    A typed slot on a node.

    Direction and kind are fixed when the port is created.
    """
    id: PortId
    name: str
    kind: PortKind
    is_input: bool

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "type": self.kind.value}


@dataclass
class OutputSocket:
    """Reference to an output port on a node."""
    node_id: NodeId
    port_id: PortId


@dataclass
class InputSocket:
    """Reference to an input port on a node."""
    node_id: NodeId
    port_id: PortId


@dataclass
class Connection:
    """
    A connection (wire) between two nodes.

    Connects an output port of one node to an input port of another.
    """
    id: ConnectionId
    source: OutputSocket
    target: InputSocket

    @classmethod
    def create(
        cls,
        source_node: NodeId,
        source_port: PortId,
        target_node: NodeId,
        target_port: PortId,
    ) -> Connection:
        """Factory method to create a new connection."""
        return cls(
            id=new_connection_id(),
            source=OutputSocket(source_node, source_port),
            target=InputSocket(target_node, target_port),
        )

    @classmethod
    def between(cls, source: Node, output_name: str, target: Node, input_name: str) -> Connection:
        """Connect two nodes by port name."""
        out_port = source.get_output(output_name)
        in_port = target.get_input(input_name)
        if out_port is None:
            raise KeyError(f"{source.kind.value} has no output '{output_name}'")
        if in_port is None:
            raise KeyError(f"{target.kind.value} has no input '{input_name}'")
        return cls.create(source.id, out_port.id, target.id, in_port.id)

    def to_dict(self) -> dict[str, str]:
        return {
            "id": self.id,
            "source_node_id": self.source.node_id,
            "source_port_id": self.source.port_id,
            "target_node_id": self.target.node_id,
            "target_port_id": self.target.port_id,
        }


@dataclass
class Node:
    """
    A single node in the workflow graph.

    Nodes have:
    - A unique ID
    - A kind (references a NodeType in the registry)
    - Input and output ports
    - Config values (kind-specific settings)
    - Run status, last result and last error
    """
    id: NodeId
    kind: NodeKind
    inputs: list[Port] = field(default_factory=list)
    outputs: list[Port] = field(default_factory=list)
    config: dict[str, Any] = field(default_factory=dict)
    position: Point2D = field(default_factory=Point2D)

    # Runtime state
    status: NodeStatus = NodeStatus.IDLE
    result: Any = field(default=None, repr=False)
    error: str | None = None

    @classmethod
    def create(
        cls,
        kind: NodeKind | str,
        position: Point2D | None = None,
        config: dict[str, Any] | None = None,
        node_id: str | None = None,
        registry: NodeRegistry | None = None,
    ) -> Node:
        """
        Create a node from its kind's definition.

        The definition supplies the default ports and config; `config`
        values override the defaults.

        Raises:
            UnknownNodeKindError: If no definition is registered for `kind`.
        """
        definition = _lookup_definition(kind, registry)
        nid = NodeId(node_id or new_node_id())

        merged = definition.get_default_parameters()
        merged.update(config or {})

        return cls(
            id=nid,
            kind=definition.kind,
            inputs=[
                Port(PortId(f"in-{nid}-{i}"), d.name, d.kind, True)
                for i, d in enumerate(definition.inputs)
            ],
            outputs=[
                Port(PortId(f"out-{nid}-{i}"), d.name, d.kind, False)
                for i, d in enumerate(definition.outputs)
            ],
            config=merged,
            position=position or Point2D(),
        )

    def get_input(self, name: str) -> Port | None:
        for port in self.inputs:
            if port.name == name:
                return port
        return None

    def get_output(self, name: str) -> Port | None:
        for port in self.outputs:
            if port.name == name:
                return port
        return None

    def get_port(self, port_id: str) -> Port | None:
        for port in self.inputs + self.outputs:
            if port.id == port_id:
                return port
        return None

    def set_config(self, name: str, value: Any) -> None:
        self.config[name] = value

    def get_config(self, name: str, default: Any = None) -> Any:
        return self.config.get(name, default)

    def reset(self) -> None:
        """Return to idle, dropping any previous error."""
        self.status = NodeStatus.IDLE
        self.error = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind.value,
            "position": {"x": self.position.x, "y": self.position.y},
            "inputs": [p.to_dict() for p in self.inputs],
            "outputs": [p.to_dict() for p in self.outputs],
            "config": {k: v for k, v in self.config.items() if not k.startswith("_")},
        }


def _lookup_definition(kind: NodeKind | str, registry: NodeRegistry | None) -> NodeType:
    if registry is None:
        from nanoflow.nodes import register_all_nodes

        register_all_nodes()
        registry = NodeRegistry.instance()

    definition = registry.get(kind)
    if definition is None:
        raise UnknownNodeKindError(kind.value if isinstance(kind, NodeKind) else str(kind))
    return definition


class NodeGraph:
    """
    The complete workflow graph.

    Contains nodes and the connections between them. Provides methods for
    editor-style manipulation and dependency analysis.
    """

    def __init__(self, name: str = "Untitled"):
        self.name: str = name
        self._nodes: dict[NodeId, Node] = {}
        self._connections: list[Connection] = []

    @classmethod
    def from_snapshot(
        cls,
        nodes: Iterable[Node],
        connections: Iterable[Connection],
        name: str = "Untitled",
    ) -> NodeGraph:
        """
        Build a graph from an editor snapshot as-is.

        Unlike `add_connection`, no checks are applied: a snapshot may be
        cyclic or dangling, and it is up to validation to reject it.
        """
        graph = cls(name)
        for node in nodes:
            graph._nodes[node.id] = node
        graph._connections = list(connections)
        return graph

    # --- Node operations ---

    @property
    def nodes(self) -> dict[NodeId, Node]:
        """Get all nodes (read-only view), in insertion order."""
        return self._nodes.copy()

    def node_list(self) -> list[Node]:
        return list(self._nodes.values())

    def add_node(self, node: Node) -> Node:
        self._nodes[node.id] = node
        return node

    def remove_node(self, node_id: NodeId) -> Node | None:
        """
        Remove a node and all its connections.

        Returns the removed node, or None if not found.
        """
        node = self._nodes.pop(node_id, None)
        if node:
            self._connections = [
                conn for conn in self._connections
                if conn.source.node_id != node_id and conn.target.node_id != node_id
            ]
        return node

    def get_node(self, node_id: NodeId) -> Node | None:
        return self._nodes.get(node_id)

    # --- Connection operations ---

    @property
    def connections(self) -> list[Connection]:
        """Get all connections (read-only copy)."""
        return self._connections.copy()

    def add_connection(self, connection: Connection) -> bool:
        """
        Add a connection to the graph.

        Returns False if either endpoint doesn't exist, the port kinds
        are incompatible, or the connection would create a cycle.
        An existing connection to the same input port is replaced.
        """
        source_node = self._nodes.get(connection.source.node_id)
        target_node = self._nodes.get(connection.target.node_id)
        if source_node is None or target_node is None:
            return False

        source_port = source_node.get_port(connection.source.port_id)
        target_port = target_node.get_port(connection.target.port_id)
        if source_port is None or target_port is None:
            return False
        if source_port.is_input or not target_port.is_input:
            return False
        if not source_port.kind.is_compatible_with(target_port.kind):
            return False

        if self._would_create_cycle(connection):
            return False

        # Inputs can only have one connection
        self._connections = [
            conn for conn in self._connections
            if not (conn.target.node_id == connection.target.node_id and
                    conn.target.port_id == connection.target.port_id)
        ]
        self._connections.append(connection)
        return True

    def connect(self, source: Node, output_name: str, target: Node, input_name: str) -> Connection:
        """
        Connect two nodes by port name.

        Raises:
            ValueError: If the connection is rejected.
        """
        conn = Connection.between(source, output_name, target, input_name)
        if not self.add_connection(conn):
            raise ValueError(
                f"Cannot connect {source.kind.value}.{output_name} "
                f"to {target.kind.value}.{input_name}"
            )
        return conn

    def remove_connection(self, connection_id: ConnectionId) -> Connection | None:
        for i, conn in enumerate(self._connections):
            if conn.id == connection_id:
                return self._connections.pop(i)
        return None

    def get_input_connection(self, node_id: NodeId, port_id: PortId) -> Connection | None:
        """Get the connection feeding into a specific input port."""
        for conn in self._connections:
            if conn.target.node_id == node_id and conn.target.port_id == port_id:
                return conn
        return None

    def get_incoming(self, node_id: NodeId) -> list[Connection]:
        return [conn for conn in self._connections if conn.target.node_id == node_id]

    def get_outgoing(self, node_id: NodeId) -> list[Connection]:
        return [conn for conn in self._connections if conn.source.node_id == node_id]

    # --- Graph analysis ---

    def get_upstream_nodes(self, node_id: NodeId) -> set[NodeId]:
        """Get all nodes that this node depends on (directly or indirectly)."""
        from nanoflow.core.scheduler import collect_dependencies

        return collect_dependencies(node_id, self._connections)

    def get_downstream_nodes(self, node_id: NodeId) -> set[NodeId]:
        """Get all nodes that depend on this node (directly or indirectly)."""
        downstream: set[NodeId] = set()
        to_visit = [node_id]

        while to_visit:
            current = to_visit.pop()
            for conn in self._connections:
                if conn.source.node_id == current:
                    target_id = conn.target.node_id
                    if target_id not in downstream:
                        downstream.add(target_id)
                        to_visit.append(target_id)

        return downstream

    def _would_create_cycle(self, connection: Connection) -> bool:
        """Check if adding this connection would create a cycle."""
        if connection.source.node_id == connection.target.node_id:
            return True

        # If the source is reachable from the target, source->target closes a loop
        return connection.source.node_id in self.get_downstream_nodes(connection.target.node_id)

    # --- Serialization ---

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "nodes": [node.to_dict() for node in self._nodes.values()],
            "connections": [conn.to_dict() for conn in self._connections],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], registry: NodeRegistry | None = None) -> NodeGraph:
        """
        Build a graph from a workflow snapshot dict.

        Nodes without explicit ports get their kind's default ports.
        Connections may name ports by id (`source_port_id`) or by port
        name (`source_port`).

        Raises:
            UnknownNodeKindError: If a node has an unregistered type.
            ValueError: If a connection references a missing node or port.
        """
        nodes: list[Node] = []
        for entry in data.get("nodes", []):
            pos = entry.get("position") or {}
            node = Node.create(
                entry["type"],
                position=Point2D(pos.get("x", 0.0), pos.get("y", 0.0)),
                config=entry.get("config"),
                node_id=entry.get("id"),
                registry=registry,
            )
            if "inputs" in entry:
                node.inputs = [_port_from_dict(p, True) for p in entry["inputs"]]
            if "outputs" in entry:
                node.outputs = [_port_from_dict(p, False) for p in entry["outputs"]]
            nodes.append(node)

        by_id = {node.id: node for node in nodes}
        connections: list[Connection] = []
        for entry in data.get("connections", []):
            source_id = entry["source_node_id"]
            target_id = entry["target_node_id"]
            if source_id not in by_id or target_id not in by_id:
                raise ValueError(f"Connection references unknown node: {entry}")
            source_port = _resolve_port(by_id[source_id], entry, "source", is_input=False)
            target_port = _resolve_port(by_id[target_id], entry, "target", is_input=True)
            connections.append(Connection(
                id=ConnectionId(entry.get("id") or new_connection_id()),
                source=OutputSocket(NodeId(source_id), source_port),
                target=InputSocket(NodeId(target_id), target_port),
            ))

        return cls.from_snapshot(nodes, connections, name=data.get("name", "Untitled"))

    # --- Utility ---

    def clear(self) -> None:
        self._nodes.clear()
        self._connections.clear()

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: NodeId) -> bool:
        return node_id in self._nodes


def _port_from_dict(data: dict[str, Any], is_input: bool) -> Port:
    return Port(
        id=PortId(data["id"]),
        name=data["name"],
        kind=PortKind(data["type"]),
        is_input=is_input,
    )


def _resolve_port(node: Node, entry: dict[str, Any], side: str, is_input: bool) -> PortId:
    port_id = entry.get(f"{side}_port_id")
    if port_id:
        return PortId(port_id)

    name = entry.get(f"{side}_port")
    port = node.get_input(name) if is_input else node.get_output(name)
    if port is None:
        raise ValueError(f"{node.kind.value} node {node.id} has no port '{name}'")
    return port.id
