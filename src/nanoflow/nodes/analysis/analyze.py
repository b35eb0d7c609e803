"""
Analyze Node - Extracts a palette, style keywords and a description.

The result is an AnalysisBundle; each of its fields feeds the output
port of the same name.
"""

from __future__ import annotations

from typing import Any

from nanoflow.core.data_types import AnalysisBundle, PortKind
from nanoflow.core.errors import MissingInputError
from nanoflow.core.node_types import (
    InputDefinition,
    NodeCategory,
    NodeKind,
    NodeRegistry,
    NodeType,
    OutputDefinition,
)


async def analyze_executor(
    inputs: dict[str, Any],
    parameters: dict[str, Any],
    context: Any,
) -> AnalysisBundle:
    image = inputs.get("image")
    if image is None:
        raise MissingInputError("Analyze requires an input image")

    analysis = await context.call("analyze", image)
    return AnalysisBundle(
        palette=list(analysis.colors),
        keywords=", ".join(analysis.keywords),
        description=analysis.description,
    )


ANALYZE_NODE = NodeType(
    kind=NodeKind.ANALYZE,
    name="Analyze",
    description="Describe an image's colors and style",
    category=NodeCategory.ANALYSIS,
    inputs=[
        InputDefinition(name="image", label="Image", kind=PortKind.IMAGE),
    ],
    outputs=[
        OutputDefinition(
            name="palette",
            label="Palette",
            kind=PortKind.PALETTE,
            description="Hex color codes",
        ),
        OutputDefinition(
            name="keywords",
            label="Keywords",
            kind=PortKind.TEXT,
            description="Comma separated style keywords",
        ),
        OutputDefinition(
            name="description",
            label="Description",
            kind=PortKind.TEXT,
        ),
    ],
    executor=analyze_executor,
    icon="🔬",
)


def register_analysis_nodes() -> None:
    """Register all analysis nodes."""
    NodeRegistry.instance().register(ANALYZE_NODE)
