"""
Nodes package - All node implementations.

This package contains node implementations organized by category:
- input: Image, Prompt, Prompt List literals
- generation: Generate, Batch Generate
- enhancement: Upscale, Style Transfer, Inpaint, Composite
- analysis: Analyze
- output: Output, Compare Grid
"""

from nanoflow.nodes.analysis import register_analysis_nodes
from nanoflow.nodes.enhancement import register_enhancement_nodes
from nanoflow.nodes.generation import register_generation_nodes
from nanoflow.nodes.input import register_input_nodes
from nanoflow.nodes.output import register_output_nodes


def register_all_nodes() -> None:
    """Register all built-in nodes (safe to call repeatedly)."""
    register_input_nodes()
    register_generation_nodes()
    register_enhancement_nodes()
    register_analysis_nodes()
    register_output_nodes()


__all__ = [
    "register_all_nodes",
]
