"""
Enhancement Nodes package.

Nodes that transform existing images: upscale, style transfer, inpaint,
composite.
"""

from nanoflow.nodes.enhancement.editing import (
    COMPOSITE_NODE,
    INPAINT_NODE,
    STYLE_TRANSFER_NODE,
    register_editing_nodes,
)
from nanoflow.nodes.enhancement.upscale import UPSCALE_NODE, register_upscale_nodes


def register_enhancement_nodes() -> None:
    """Register all enhancement nodes."""
    register_upscale_nodes()
    register_editing_nodes()


__all__ = [
    "UPSCALE_NODE",
    "STYLE_TRANSFER_NODE",
    "INPAINT_NODE",
    "COMPOSITE_NODE",
    "register_enhancement_nodes",
]
