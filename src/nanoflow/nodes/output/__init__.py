"""
Output Nodes package.
"""

from nanoflow.nodes.output.output import (
    COMPARE_GRID_NODE,
    OUTPUT_NODE,
    register_output_nodes,
)

__all__ = [
    "OUTPUT_NODE",
    "COMPARE_GRID_NODE",
    "register_output_nodes",
]
