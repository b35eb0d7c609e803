"""
Upscale Node - Re-renders an image at a higher resolution.
"""

from __future__ import annotations

from typing import Any

from nanoflow.core.data_types import PortKind
from nanoflow.core.errors import MissingInputError
from nanoflow.core.node_types import (
    QUALITIES,
    InputDefinition,
    NodeCategory,
    NodeKind,
    NodeRegistry,
    NodeType,
    OutputDefinition,
    ParameterDefinition,
)


async def upscale_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> Any:
    """Execute image upscaling."""
    image = inputs.get("image")
    if image is None:
        raise MissingInputError("Upscale requires an input image")

    target_size = parameters.get("target_size") or "4K"
    return await context.call(
        "edit_variation",
        image,
        f"Upscale to {target_size}, enhance details, high resolution, photorealistic",
        target_size,
    )


UPSCALE_NODE = NodeType(
    kind=NodeKind.UPSCALE,
    name="Upscale",
    description="Upscale an image and enhance its details",
    category=NodeCategory.ENHANCEMENT,
    inputs=[
        InputDefinition(
            name="image",
            label="Image",
            kind=PortKind.IMAGE,
            description="Image to upscale",
        ),
    ],
    outputs=[
        OutputDefinition(
            name="image",
            label="Image",
            kind=PortKind.IMAGE,
            description="Upscaled image",
        ),
    ],
    parameters=[
        ParameterDefinition.enum(
            name="target_size",
            label="Target Size",
            options=QUALITIES,
            default="4K",
        ),
    ],
    executor=upscale_executor,
    icon="🔍",
)


def register_upscale_nodes() -> None:
    NodeRegistry.instance().register(UPSCALE_NODE)
