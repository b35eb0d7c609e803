"""
Core module - Graph model, validation, scheduling, caching and execution.

This module provides the fundamental building blocks for nanoflow:
- Graph: Nodes, ports and connections
- Data Types: Port kinds, images and output bundles
- Node Types: Node definitions and registry
- Execution: Validator, scheduler, resolver, cache and engine
"""

from nanoflow.core.graph import (
    Connection,
    ConnectionId,
    InputSocket,
    Node,
    NodeGraph,
    NodeId,
    NodeStatus,
    OutputSocket,
    Point2D,
    Port,
    PortId,
    new_connection_id,
    new_node_id,
)

from nanoflow.core.data_types import (
    AnalysisBundle,
    GridSelection,
    ImageData,
    ImageMetadata,
    OutputBundle,
    PortKind,
    decode_value,
    encode_value,
)

from nanoflow.core.node_types import (
    InputDefinition,
    NodeCategory,
    NodeExecutor,
    NodeKind,
    NodeRegistry,
    NodeType,
    OutputDefinition,
    ParameterDefinition,
    ParameterType,
    register_node,
)

from nanoflow.core.errors import (
    BackendError,
    CyclicGraphError,
    EmptyWorkloadError,
    ExecutionError,
    MissingInputError,
    UnconnectedInputError,
    UnknownNodeKindError,
    ValidationError,
    WorkflowError,
)

from nanoflow.core.validation import ValidationResult, find_cycle, validate
from nanoflow.core.scheduler import collect_dependencies, execution_order
from nanoflow.core.resolver import resolve_inputs
from nanoflow.core.variables import expand_variables
from nanoflow.core.cache import CacheEntry, NodeCache, hash_inputs
from nanoflow.core.settings import EngineSettings, load_settings, save_settings

from nanoflow.core.execution import (
    ExecutionContext,
    ExecutionEngine,
    ExecutionResult,
    ExecutionStatus,
    NodeUpdate,
)


__all__ = [
    # graph.py
    "Connection",
    "ConnectionId",
    "InputSocket",
    "Node",
    "NodeGraph",
    "NodeId",
    "NodeStatus",
    "OutputSocket",
    "Point2D",
    "Port",
    "PortId",
    "new_connection_id",
    "new_node_id",
    # data_types.py
    "AnalysisBundle",
    "GridSelection",
    "ImageData",
    "ImageMetadata",
    "OutputBundle",
    "PortKind",
    "decode_value",
    "encode_value",
    # node_types.py
    "InputDefinition",
    "NodeCategory",
    "NodeExecutor",
    "NodeKind",
    "NodeRegistry",
    "NodeType",
    "OutputDefinition",
    "ParameterDefinition",
    "ParameterType",
    "register_node",
    # errors.py
    "BackendError",
    "CyclicGraphError",
    "EmptyWorkloadError",
    "ExecutionError",
    "MissingInputError",
    "UnconnectedInputError",
    "UnknownNodeKindError",
    "ValidationError",
    "WorkflowError",
    # execution
    "ValidationResult",
    "find_cycle",
    "validate",
    "collect_dependencies",
    "execution_order",
    "resolve_inputs",
    "expand_variables",
    "CacheEntry",
    "NodeCache",
    "hash_inputs",
    "EngineSettings",
    "load_settings",
    "save_settings",
    "ExecutionContext",
    "ExecutionEngine",
    "ExecutionResult",
    "ExecutionStatus",
    "NodeUpdate",
]
