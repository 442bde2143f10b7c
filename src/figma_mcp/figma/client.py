"""Figma REST API client.

Implements the DesignFileClient interface the tools depend on:
- get_file / get_node: fetch a node tree and simplify it
- get_image: resolve a rendered image URL and save it locally
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Literal, Protocol, runtime_checkable

import httpx

from ..errors import FigmaAPIError
from .simplify import SimplifiedDesign, simplify_file, simplify_nodes

logger = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.figma.com/v1"

ImageFormat = Literal["svg", "png"]


@runtime_checkable
class DesignFileClient(Protocol):
    """What the Figma tools need from a design-file backend."""

    async def get_file(self, file_key: str, depth: int | None = None) -> SimplifiedDesign: ...

    async def get_node(
        self, file_key: str, node_id: str, depth: int | None = None
    ) -> SimplifiedDesign: ...

    async def get_image(
        self,
        file_key: str,
        node_id: str,
        file_name: str,
        local_path: str,
        file_type: ImageFormat,
    ) -> bool:
        """Render a node as an image and save it to ``local_path/file_name``.

        Returns:
            True once the image is saved. False if Figma rendered no image for
            the node, or rendering, downloading or saving it failed.
        """
        try:
            data = await self._get_json(
                f"/images/{file_key}", {"ids": node_id, "format": file_type}
            )
            if data.get("err"):
                raise FigmaAPIError(f"Figma image render failed: {data['err']}")

            image_url = (data.get("images") or {}).get(node_id)
            if not image_url:
                logger.warning(f"No image URL returned for node {node_id}")
                return False

            response = await self._client.get(image_url)
            if response.is_error:
                raise FigmaAPIError(
                    f"Image download for node {node_id} failed", response.status_code
                )

            target = Path(local_path) / file_name
            await asyncio.get_running_loop().run_in_executor(
                None, _write_file, target, response.content
            )
        except (FigmaAPIError, httpx.RequestError, OSError) as e:
            logger.warning(f"Could not save image for node {node_id}: {e}")
            return False

        logger.info(f"Saved image for node {node_id} to {target}")
        return True


def _write_file(target: Path, content: bytes) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(content)
