"""
Analysis Nodes package.
"""

from nanoflow.nodes.analysis.analyze import (
    ANALYZE_NODE,
    analyze_executor,
    register_analysis_nodes,
)

__all__ = [
    "ANALYZE_NODE",
    "analyze_executor",
    "register_analysis_nodes",
]
