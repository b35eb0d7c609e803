"""
nanoflow - Node-based image generation workflows.
"""

__version__ = "0.1.0"
