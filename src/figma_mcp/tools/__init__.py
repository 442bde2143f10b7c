"""Tool registry and the Figma tool set."""

from .figma import (
    DOWNLOAD_FIGMA_IMAGES,
    GET_FIGMA_DATA,
    DownloadFigmaImagesArgs,
    FigmaTools,
    GetFigmaDataArgs,
    ImageNode,
    register_figma_tools,
)
from .registry import ToolDefinition, ToolHandler, ToolRegistry

__all__ = [
    # Registry
    "ToolDefinition",
    "ToolHandler",
    "ToolRegistry",
    # Figma tools
    "DOWNLOAD_FIGMA_IMAGES",
    "GET_FIGMA_DATA",
    "DownloadFigmaImagesArgs",
    "FigmaTools",
    "GetFigmaDataArgs",
    "ImageNode",
    "register_figma_tools",
]
