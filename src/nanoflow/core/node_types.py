"""
Node Type System - Definitions and registry for node kinds.

This module defines how node kinds are specified:
- NodeKind: The closed set of node kinds
- InputDefinition: Describes an input port
- OutputDefinition: Describes an output port
- ParameterDefinition: Describes a configurable setting
- NodeType: Complete definition of a node kind
- NodeRegistry: Global registry of available node kinds

Node definitions are static metadata: they supply the default ports and
configuration for new nodes and the executor the engine dispatches to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, runtime_checkable

from nanoflow.core.data_types import ConfigValue, PortKind


class NodeKind(Enum):
    """The kinds of nodes a workflow may contain."""
    IMAGE_INPUT = "IMAGE_INPUT"            # Reference image literal
    TEXT_INPUT = "TEXT_INPUT"              # Prompt literal
    TEXT_ARRAY_INPUT = "TEXT_ARRAY_INPUT"  # Prompt list literal
    GENERATE = "GENERATE"                  # Text -> Image
    BATCH_GENERATE = "BATCH_GENERATE"      # Prompts -> Images
    STYLE_TRANSFER = "STYLE_TRANSFER"      # Content + Style -> Image
    INPAINT = "INPAINT"                    # Image + Mask + Prompt -> Image
    UPSCALE = "UPSCALE"                    # Image -> Larger image
    ANALYZE = "ANALYZE"                    # Image -> Palette + Keywords + Description
    COMPOSITE = "COMPOSITE"                # Images -> Merged image
    COMPARE_GRID = "COMPARE_GRID"          # Images -> Selected image
    OUTPUT = "OUTPUT"                      # Final result


class NodeCategory(Enum):
    """Categories for organizing nodes in the palette."""
    INPUT = "input"
    OUTPUT = "output"
    GENERATION = "generation"
    ENHANCEMENT = "enhancement"
    ANALYSIS = "analysis"


class ParameterType(Enum):
    """Types of node settings (determines the editor widget)."""
    TEXT = "text"
    TEXT_MULTILINE = "text_multiline"
    TEXT_LIST = "text_list"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ENUM = "enum"
    IMAGE = "image"
    VARIABLES = "variables"


@dataclass
class InputDefinition:
    """
    Definition of an input port on a node.

    Attributes:
        name: Port identifier (used in code)
        label: Display label
        kind: Kind of value accepted
    """
    name: str
    label: str
    kind: PortKind
    description: str = ""


@dataclass
class OutputDefinition:
    """
    Definition of an output port on a node.

    Attributes:
        name: Port identifier (used in code)
        label: Display label
        kind: Kind of value produced
    """
    name: str
    label: str
    kind: PortKind
    description: str = ""


@dataclass
class EnumOption:
    """A single option in an enum parameter."""
    value: str
    label: str


@dataclass
class ParameterDefinition:
    """
    Definition of a configurable setting on a node.

    Settings are user-editable values stored in the node's config.
    Unlike inputs, they don't come from connections.
    """
    name: str
    label: str
    param_type: ParameterType
    default: ConfigValue = None
    min_value: float | None = None
    max_value: float | None = None
    options: list[EnumOption] = field(default_factory=list)
    description: str = ""

    @classmethod
    def text(
        cls,
        name: str,
        label: str,
        default: str = "",
        multiline: bool = False,
        description: str = "",
    ) -> ParameterDefinition:
        """Factory for text parameter."""
        return cls(
            name=name,
            label=label,
            param_type=ParameterType.TEXT_MULTILINE if multiline else ParameterType.TEXT,
            default=default,
            description=description,
        )

    @classmethod
    def integer(
        cls,
        name: str,
        label: str,
        default: int | None = 0,
        min_value: int | None = None,
        max_value: int | None = None,
        description: str = "",
    ) -> ParameterDefinition:
        """Factory for integer parameter."""
        return cls(
            name=name,
            label=label,
            param_type=ParameterType.INTEGER,
            default=default,
            min_value=min_value,
            max_value=max_value,
            description=description,
        )

    @classmethod
    def boolean(
        cls,
        name: str,
        label: str,
        default: bool = False,
        description: str = "",
    ) -> ParameterDefinition:
        """Factory for boolean parameter."""
        return cls(
            name=name,
            label=label,
            param_type=ParameterType.BOOLEAN,
            default=default,
            description=description,
        )

    @classmethod
    def enum(
        cls,
        name: str,
        label: str,
        options: list[tuple[str, str]],  # [(value, label), ...]
        default: str | None = None,
        description: str = "",
    ) -> ParameterDefinition:
        """Factory for enum parameter."""
        enum_options = [EnumOption(v, l) for v, l in options]
        return cls(
            name=name,
            label=label,
            param_type=ParameterType.ENUM,
            default=default or (options[0][0] if options else None),
            options=enum_options,
            description=description,
        )


ASPECT_RATIOS = [
    ("1:1", "Square"),
    ("16:9", "Landscape 16:9"),
    ("9:16", "Portrait 9:16"),
    ("4:3", "Landscape 4:3"),
    ("3:4", "Portrait 3:4"),
]

QUALITIES = [
    ("1K", "1K"),
    ("2K", "2K"),
    ("4K", "4K"),
]


@runtime_checkable
class NodeExecutor(Protocol):
    """Protocol for node execution functions."""

    async def __call__(
        self,
        inputs: dict[str, Any],
        parameters: dict[str, Any],
        context: Any,
    ) -> Any:
        """
        Execute the node.

        Args:
            inputs: Resolved input values by port name (unbound ports absent)
            parameters: Default parameters overlaid with the node's config
            context: Execution context with access to the provider

        Returns:
            The node result (a value, a list, or an OutputBundle)
        """
        ...


@dataclass
class NodeType:
    """
    Complete definition of a node kind.

    NodeTypes are templates that define what a node does, its inputs,
    outputs, and settings. Nodes in a graph reference a NodeType by kind.
    """
    kind: NodeKind
    name: str
    category: NodeCategory
    description: str = ""

    inputs: list[InputDefinition] = field(default_factory=list)
    outputs: list[OutputDefinition] = field(default_factory=list)
    parameters: list[ParameterDefinition] = field(default_factory=list)

    executor: NodeExecutor | None = None

    # Returns True when a node of this kind can run without any incoming
    # connection, given its config
    standalone: Callable[[dict[str, Any]], bool] | None = None

    icon: str = ""

    @property
    def is_source(self) -> bool:
        return not self.inputs

    def get_input(self, name: str) -> InputDefinition | None:
        for inp in self.inputs:
            if inp.name == name:
                return inp
        return None

    def get_output(self, name: str) -> OutputDefinition | None:
        for out in self.outputs:
            if out.name == name:
                return out
        return None

    def get_default_parameters(self) -> dict[str, ConfigValue]:
        """Get default values for all parameters (fresh copies of mutables)."""
        defaults: dict[str, ConfigValue] = {}
        for p in self.parameters:
            value = p.default
            if isinstance(value, (list, dict)):
                value = value.copy()
            defaults[p.name] = value
        return defaults

    def can_run_unconnected(self, config: dict[str, Any]) -> bool:
        """Check if a node with this config may have no incoming connections."""
        if self.is_source:
            return True
        if self.standalone is None:
            return False
        return bool(self.standalone(config))


class NodeRegistry:
    """
    Global registry of available node kinds.

    Node modules register their definitions here; the engine looks up
    executors and the graph model looks up default ports.
    """

    _instance: NodeRegistry | None = None

    def __new__(cls) -> NodeRegistry:
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._types = {}
        return cls._instance

    @classmethod
    def instance(cls) -> NodeRegistry:
        """Get the singleton instance."""
        return cls()

    def __init__(self):
        if not hasattr(self, "_types"):
            self._types: dict[NodeKind, NodeType] = {}

    def register(self, node_type: NodeType) -> None:
        self._types[node_type.kind] = node_type

    def unregister(self, kind: NodeKind) -> NodeType | None:
        return self._types.pop(kind, None)

    def get(self, kind: NodeKind | str) -> NodeType | None:
        """Get a node type by kind (enum member or its string value)."""
        if isinstance(kind, str):
            try:
                kind = NodeKind(kind)
            except ValueError:
                return None
        return self._types.get(kind)

    def get_all(self) -> list[NodeType]:
        return list(self._types.values())

    def list_by_category(self, category: NodeCategory) -> list[NodeType]:
        return [t for t in self._types.values() if t.category == category]

    def clear(self) -> None:
        """Remove all registered types (for testing)."""
        self._types.clear()

    def __len__(self) -> int:
        return len(self._types)

    def __contains__(self, kind: NodeKind) -> bool:
        return kind in self._types


def register_node(node_type: NodeType) -> NodeType:
    """Register a node type with the global registry."""
    NodeRegistry.instance().register(node_type)
    return node_type
