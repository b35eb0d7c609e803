"""
Output Nodes - Nodes that collect the final results of a workflow.

These include Output (a passthrough sink) and Compare Grid (picks one
image out of a batch).
"""

from __future__ import annotations

from typing import Any

from nanoflow.core.data_types import GridSelection, PortKind
from nanoflow.core.errors import EmptyWorkloadError
from nanoflow.core.node_types import (
    InputDefinition,
    NodeCategory,
    NodeKind,
    NodeRegistry,
    NodeType,
    OutputDefinition,
    ParameterDefinition,
)


async def output_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> Any:
    """
    Execute output node - passes the image through.

    Display or saving is left to whoever receives the result.
    """
    return inputs.get("image")


async def compare_grid_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> GridSelection:
    """Select one image from a batch; the first image unless a valid index is set."""
    images = inputs.get("images")
    if not images:
        raise EmptyWorkloadError("Compare Grid requires images from a Batch Generate node")

    images = list(images)
    index = parameters.get("selected_index")
    if isinstance(index, int) and not isinstance(index, bool) and 0 <= index < len(images):
        selected = images[index]
    else:
        selected = images[0]

    return GridSelection(images=images, selected=selected)


OUTPUT_NODE = NodeType(
    kind=NodeKind.OUTPUT,
    name="Output",
    description="Final result of the workflow",
    category=NodeCategory.OUTPUT,
    inputs=[
        InputDefinition(
            name="image",
            label="Image",
            kind=PortKind.IMAGE,
            description="Image to output",
        ),
    ],
    outputs=[],
    executor=output_executor,
    icon="📤",
)


COMPARE_GRID_NODE = NodeType(
    kind=NodeKind.COMPARE_GRID,
    name="Compare Grid",
    description="Compare a batch of images and pick the best",
    category=NodeCategory.OUTPUT,
    inputs=[
        InputDefinition(name="images", label="Images", kind=PortKind.IMAGE_ARRAY),
    ],
    outputs=[
        OutputDefinition(name="selected", label="Selected", kind=PortKind.IMAGE),
    ],
    parameters=[
        ParameterDefinition.integer(
            name="selected_index",
            label="Selected",
            default=None,
            min_value=0,
        ),
        ParameterDefinition.integer(
            name="grid_columns",
            label="Columns",
            default=2,
            min_value=1,
            max_value=8,
        ),
        ParameterDefinition.boolean(
            name="show_labels",
            label="Show Labels",
            default=True,
        ),
    ],
    executor=compare_grid_executor,
    icon="🏆",
)


def register_output_nodes() -> None:
    """Register all output node types."""
    registry = NodeRegistry.instance()
    registry.register(OUTPUT_NODE)
    registry.register(COMPARE_GRID_NODE)
