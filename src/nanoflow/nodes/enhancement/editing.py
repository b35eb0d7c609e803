"""
Editing Nodes - Nodes that derive a new image from existing ones.

- Style Transfer: content image + style image
- Inpaint: image + mask + prompt (the mask is not sent to the provider yet)
- Composite: two or more images merged following a prompt
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


async def style_transfer_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> Any:
    content = inputs.get("content")
    style = inputs.get("style")
    if content is None or style is None:
        raise MissingInputError("Style transfer requires both content and style images")

    return await context.call("style_transfer", content, style)


async def inpaint_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> Any:
    image = inputs.get("image")
    if image is None:
        raise MissingInputError("Inpaint requires an input image")

    # TODO: send the mask once the provider supports masked edits
    prompt = inputs.get("prompt") or ""
    return await context.call(
        "edit_variation",
        image,
        prompt,
        parameters.get("quality") or "2K",
    )


async def composite_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> Any:
    """Merge every bound image input, in port order, into one scene."""
    node = context.current_node
    image_ports = [p.name for p in node.inputs if p.kind == PortKind.IMAGE]
    text_ports = [p.name for p in node.inputs if p.kind == PortKind.TEXT]

    images = [inputs[name] for name in image_ports if inputs.get(name) is not None]
    prompt = inputs.get(text_ports[0]) if text_ports else None

    if len(images) < 2:
        raise MissingInputError("Composite requires at least 2 input images")

    return await context.call("compose", images, prompt or "")


STYLE_TRANSFER_NODE = NodeType(
    kind=NodeKind.STYLE_TRANSFER,
    name="Style Transfer",
    description="Apply the style of one image to another",
    category=NodeCategory.ENHANCEMENT,
    inputs=[
        InputDefinition(name="content", label="Content", kind=PortKind.IMAGE),
        InputDefinition(name="style", label="Style", kind=PortKind.IMAGE),
    ],
    outputs=[
        OutputDefinition(name="image", label="Image", kind=PortKind.IMAGE),
    ],
    executor=style_transfer_executor,
    icon="🎨",
)


INPAINT_NODE = NodeType(
    kind=NodeKind.INPAINT,
    name="Inpaint",
    description="Edit an image following a prompt",
    category=NodeCategory.ENHANCEMENT,
    inputs=[
        InputDefinition(name="image", label="Image", kind=PortKind.IMAGE),
        InputDefinition(name="mask", label="Mask", kind=PortKind.MASK),
        InputDefinition(name="prompt", label="Prompt", kind=PortKind.TEXT),
    ],
    outputs=[
        OutputDefinition(name="image", label="Image", kind=PortKind.IMAGE),
    ],
    parameters=[
        ParameterDefinition.enum(
            name="quality",
            label="Quality",
            options=QUALITIES,
            default="2K",
        ),
    ],
    executor=inpaint_executor,
    icon="🖌️",
)


COMPOSITE_NODE = NodeType(
    kind=NodeKind.COMPOSITE,
    name="Composite",
    description="Combine images into one cohesive scene",
    category=NodeCategory.ENHANCEMENT,
    inputs=[
        InputDefinition(name="image1", label="Image 1", kind=PortKind.IMAGE),
        InputDefinition(name="image2", label="Image 2", kind=PortKind.IMAGE),
        InputDefinition(name="prompt", label="Prompt", kind=PortKind.TEXT),
    ],
    outputs=[
        OutputDefinition(name="image", label="Image", kind=PortKind.IMAGE),
    ],
    executor=composite_executor,
    icon="🧩",
)


def register_editing_nodes() -> None:
    registry = NodeRegistry.instance()
    registry.register(STYLE_TRANSFER_NODE)
    registry.register(INPAINT_NODE)
    registry.register(COMPOSITE_NODE)
