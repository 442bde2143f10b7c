"""Figma tools exposed over MCP.

- get_figma_data: Layout information for a whole file or one node
- download_figma_images: Render image/icon nodes and save them locally
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from typing import Any

from pydantic import BaseModel, Field, StrictFloat, StrictStr

from ..figma.client import DesignFileClient
from ..figma.simplify import SimplifiedDesign
from ..protocol.messages import InvocationResult
from .registry import ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)

GET_FIGMA_DATA = "get_figma_data"
DOWNLOAD_FIGMA_IMAGES = "download_figma_images"


# =============================================================================
# Argument Models
# =============================================================================


class GetFigmaDataArgs(BaseModel):
    """Arguments of get_figma_data."""

    fileKey: StrictStr = Field(
        description=(
            "The key of the Figma file to fetch, often found in a provided URL "
            "like figma.com/(file|design)/<fileKey>/..."
        )
    )
    nodeId: StrictStr | None = Field(
        default=None,
        description=(
            "The ID of the node to fetch, often found as URL parameter "
            "node-id=<nodeId>, always use if provided"
        ),
    )
    depth: StrictFloat | None = Field(
        default=None,
        description=(
            "How many levels deep to traverse the node tree, only use if "
            "explicitly requested by the user"
        ),
    )


class ImageNode(BaseModel):
    """One node to render and the file name to save it under."""

    nodeId: StrictStr = Field(
        description="The Figma ID of the node to fetch, formatted as 1234:5678"
    )
    fileName: StrictStr = Field(description="The local name for saving the fetched file")


class DownloadFigmaImagesArgs(BaseModel):
    """Arguments of download_figma_images."""

    fileKey: StrictStr = Field(description="The key of the Figma file containing the node")
    nodes: list[ImageNode] = Field(description="The nodes to fetch as images")
    localPath: StrictStr = Field(
        description=(
            "The absolute path to the directory where images are stored in the "
            "project. Automatically creates directories if needed."
        )
    )


def render_design(design: SimplifiedDesign) -> str:
    """Serialize a simplified design as ``{metadata, nodes, globalVars}`` JSON."""
    document = {
        "metadata": design.metadata(),
        "nodes": design.nodes,
        "globalVars": design.global_vars.model_dump(),
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def image_format(file_name: str) -> str:
    return "svg" if file_name.endswith(".svg") else "png"


class FigmaTools:
    """Handlers for the Figma tools, bound to a design-file client."""

    def __init__(self, client: DesignFileClient) -> None:
        self._client = client

    async def get_figma_data(self, arguments: dict[str, Any]) -> InvocationResult:
        file_key = arguments["fileKey"]
        node_id = arguments.get("nodeId")
        depth = arguments.get("depth")
        if depth is not None:
            depth = int(depth)

        target = f"node {node_id} from file" if node_id else "full file"
        layers = f"{depth} layers deep" if depth else "all layers"
        logger.info(f"Fetching {layers} of {target} {file_key}")

        try:
            if node_id:
                design = await self._client.get_node(file_key, node_id, depth)
            else:
                design = await self._client.get_file(file_key, depth)
        except Exception as e:
            logger.error(f"Error fetching file {file_key}: {e}")
            return InvocationResult.failure(f"Error fetching file: {e}")

        logger.info(f"Successfully fetched file: {design.name}")
        return InvocationResult.success(render_design(design))

    async def download_figma_images(self, arguments: dict[str, Any]) -> InvocationResult:
        file_key = arguments["fileKey"]
        local_path = arguments["localPath"]
        nodes = arguments["nodes"]

        downloads = []
        try:
            for node in nodes:
                logger.info(
                    f'Getting image "{node["nodeId"]}", saving to: {local_path}/{node["fileName"]}'
                )
                downloads.append(
                    self._client.get_image(
                        file_key,
                        node["nodeId"],
                        node["fileName"],
                        local_path,
                        image_format(node["fileName"]),
                    )
                )
        except Exception as e:
            for download in downloads:
                if inspect.iscoroutine(download):
                    download.close()
            logger.error(f"Error downloading images from file {file_key}: {e}")
            return InvocationResult.failure(f"Error downloading images: {e}")

        # Every download runs to completion; a raised error counts as a failure
        results = await asyncio.gather(*downloads, return_exceptions=True)
        for node, result in zip(nodes, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"Image download for node {node['nodeId']} failed: {result}")

        saved = all(
            result and not isinstance(result, BaseException) for result in results
        )
        return InvocationResult.success("Success" if saved else "Failed")


def register_figma_tools(registry: ToolRegistry, client: DesignFileClient) -> FigmaTools:
    """Register both Figma tools on ``registry``.

    Raises:
        DuplicateToolError: If either name is already taken
    """
    tools = FigmaTools(client)
    registry.register(
        ToolDefinition(
            name=GET_FIGMA_DATA,
            description=(
                "When the nodeId cannot be obtained, obtain the layout information "
                "about the entire Figma file"
            ),
            input_model=GetFigmaDataArgs,
            handler=tools.get_figma_data,
        )
    )
    registry.register(
        ToolDefinition(
            name=DOWNLOAD_FIGMA_IMAGES,
            description=(
                "Download SVG or PNG images used in a Figma file based on the IDs "
                "of image or icon nodes"
            ),
            input_model=DownloadFigmaImagesArgs,
            handler=tools.download_figma_images,
        )
    )
    return tools
