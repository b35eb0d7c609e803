"""
Input Nodes package.

Literal sources: reference image, prompt, prompt list.
"""

from nanoflow.nodes.input.literals import (
    IMAGE_INPUT_NODE,
    TEXT_ARRAY_INPUT_NODE,
    TEXT_INPUT_NODE,
    register_input_nodes,
)

__all__ = [
    "IMAGE_INPUT_NODE",
    "TEXT_INPUT_NODE",
    "TEXT_ARRAY_INPUT_NODE",
    "register_input_nodes",
]
