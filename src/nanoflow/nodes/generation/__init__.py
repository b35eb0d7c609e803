"""
Generation Nodes package.

Nodes for AI image generation.
"""

from nanoflow.nodes.generation.generate import (
    BATCH_GENERATE_NODE,
    GENERATE_NODE,
    batch_generate_executor,
    generate_executor,
    register_generation_nodes,
)

__all__ = [
    "GENERATE_NODE",
    "BATCH_GENERATE_NODE",
    "generate_executor",
    "batch_generate_executor",
    "register_generation_nodes",
]
