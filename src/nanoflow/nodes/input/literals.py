"""
Input Nodes - Nodes that provide literal values to the workflow.

These hold a reference image, a prompt, or a list of prompts in their
config and never fail.
"""

from __future__ import annotations

from typing import Any

from nanoflow.core.data_types import PortKind
from nanoflow.core.node_types import (
    NodeCategory,
    NodeKind,
    NodeRegistry,
    NodeType,
    OutputDefinition,
    ParameterDefinition,
    ParameterType,
)


async def image_input_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> Any:
    """Execute image input node - returns the stored image (or None)."""
    return parameters.get("image_data")


async def text_input_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> str:
    """Execute prompt node - simply passes the text parameter to output."""
    return parameters.get("text") or ""


async def text_array_input_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> list[str]:
    """Execute prompt list node - drops blank entries."""
    prompts = parameters.get("prompts") or []
    return [p for p in prompts if isinstance(p, str) and p.strip()]


IMAGE_INPUT_NODE = NodeType(
    kind=NodeKind.IMAGE_INPUT,
    name="Image Input",
    description="Reference image",
    category=NodeCategory.INPUT,
    inputs=[],
    outputs=[
        OutputDefinition(
            name="image",
            label="Image",
            kind=PortKind.IMAGE,
            description="The stored image",
        ),
    ],
    parameters=[
        ParameterDefinition(
            name="image_data",
            label="Image",
            param_type=ParameterType.IMAGE,
            default=None,
            description="Image data (data URL or decoded image)",
        ),
    ],
    executor=image_input_executor,
    icon="📷",
)


TEXT_INPUT_NODE = NodeType(
    kind=NodeKind.TEXT_INPUT,
    name="Prompt",
    description="Text prompt input for generation",
    category=NodeCategory.INPUT,
    inputs=[],
    outputs=[
        OutputDefinition(
            name="text",
            label="Text",
            kind=PortKind.TEXT,
            description="The prompt text",
        ),
    ],
    parameters=[
        ParameterDefinition.text(
            name="text",
            label="Prompt Text",
            default="",
            multiline=True,
            description="Enter your prompt here",
        ),
    ],
    executor=text_input_executor,
    icon="✏️",
)


TEXT_ARRAY_INPUT_NODE = NodeType(
    kind=NodeKind.TEXT_ARRAY_INPUT,
    name="Prompt List",
    description="A list of prompts for batch generation",
    category=NodeCategory.INPUT,
    inputs=[],
    outputs=[
        OutputDefinition(
            name="prompts",
            label="Prompts",
            kind=PortKind.TEXT_ARRAY,
        ),
    ],
    parameters=[
        ParameterDefinition(
            name="prompts",
            label="Prompts",
            param_type=ParameterType.TEXT_LIST,
            default=[""],
        ),
    ],
    executor=text_array_input_executor,
    icon="📝",
)


def register_input_nodes() -> None:
    """Register all input node types."""
    registry = NodeRegistry.instance()
    registry.register(IMAGE_INPUT_NODE)
    registry.register(TEXT_INPUT_NODE)
    registry.register(TEXT_ARRAY_INPUT_NODE)
