"""Figma design-file collaborators: API client and node-tree simplifier."""

from .client import DEFAULT_API_BASE, DesignFileClient, FigmaClient, ImageFormat
from .simplify import GlobalVars, SimplifiedDesign, simplify_file, simplify_node, simplify_nodes

__all__ = [
    "DEFAULT_API_BASE",
    "DesignFileClient",
    "FigmaClient",
    "ImageFormat",
    "GlobalVars",
    "SimplifiedDesign",
    "simplify_file",
    "simplify_node",
    "simplify_nodes",
]
