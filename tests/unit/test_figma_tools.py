"""Tests for the get_figma_data and download_figma_images tools."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest

from figma_mcp.errors import DuplicateToolError, FigmaAPIError
from figma_mcp.figma.client import FigmaClient
from figma_mcp.protocol.engine import ProtocolEngine
from figma_mcp.tools.figma import (
    DOWNLOAD_FIGMA_IMAGES,
    GET_FIGMA_DATA,
    FigmaTools,
    image_format,
    register_figma_tools,
    render_design,
)
from figma_mcp.tools.registry import ToolRegistry


class TestRegistration:
    """Test the tool set registered on a registry."""

    def test_both_tools_registered(self, design_client):
        registry = ToolRegistry()

        tools = register_figma_tools(registry, design_client)

        assert isinstance(tools, FigmaTools)
        assert [tool.name for tool in registry.list_tools()] == [GET_FIGMA_DATA, DOWNLOAD_FIGMA_IMAGES]
        assert registry.resolve(GET_FIGMA_DATA).handler == tools.get_figma_data

    def test_registering_twice_fails(self, design_client):
        registry = ToolRegistry()
        register_figma_tools(registry, design_client)

        with pytest.raises(DuplicateToolError):
            register_figma_tools(registry, design_client)


class TestHelpers:
    def test_image_format(self):
        assert image_format("icon.svg") == "svg"
        assert image_format("photo.png") == "png"
        assert image_format("photo.jpg") == "png"
        assert image_format("svg") == "png"

    def test_render_design(self, sample_design):
        document = json.loads(render_design(sample_design))

        assert document == {
            "metadata": {
                "name": "Landing Page",
                "lastModified": "2024-05-01T10:00:00Z",
                "thumbnailUrl": "https://figma.example/thumb.png",
            },
            "nodes": [{"id": "1:2", "name": "Hero", "type": "FRAME"}],
            "globalVars": {"styles": {"fill_ABC123": ["#FFFFFF"]}},
        }


# =============================================================================
# Tests: get_figma_data
# =============================================================================


class TestGetFigmaData:
    """Test get_figma_data through the engine."""

    @pytest.mark.anyio
    async def test_whole_file(self, figma_engine, design_client, channel_factory, make_call):
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id, make_call(1, GET_FIGMA_DATA, {"fileKey": "ABC123"})
        )

        design_client.get_file.assert_awaited_once_with("ABC123", None)
        design_client.get_node.assert_not_called()
        assert "isError" not in response.result
        document = json.loads(response.result["content"][0]["text"])
        assert set(document) == {"metadata", "nodes", "globalVars"}

    @pytest.mark.anyio
    async def test_single_node_with_depth(
        self, figma_engine, design_client, channel_factory, make_call
    ):
        session = await figma_engine.connect(channel_factory())

        await figma_engine.dispatch_message(
            session.id,
            make_call(1, GET_FIGMA_DATA, {"fileKey": "ABC123", "nodeId": "1:2", "depth": 2}),
        )

        design_client.get_node.assert_awaited_once_with("ABC123", "1:2", 2)
        design_client.get_file.assert_not_called()

    @pytest.mark.anyio
    async def test_client_error(self, figma_engine, design_client, channel_factory, make_call):
        design_client.get_file.side_effect = FigmaAPIError("Figma API request /files/NOPE failed", 404)
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id, make_call(1, GET_FIGMA_DATA, {"fileKey": "NOPE"})
        )

        assert response.result == {
            "content": [
                {
                    "type": "text",
                    "text": "Error fetching file: Figma API request /files/NOPE failed (HTTP 404)",
                }
            ],
            "isError": True,
        }

    @pytest.mark.anyio
    async def test_missing_file_key(self, figma_engine, design_client, channel_factory, make_call):
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id, make_call(1, GET_FIGMA_DATA, {"nodeId": "1:2"})
        )

        assert response.result["isError"] is True
        assert "fileKey: Field required" in response.result["content"][0]["text"]
        design_client.get_node.assert_not_called()


# =============================================================================
# Tests: download_figma_images
# =============================================================================


class TestDownloadFigmaImages:
    """Test download_figma_images through the engine."""

    @pytest.mark.anyio
    async def test_all_succeed(self, figma_engine, design_client, channel_factory, make_call):
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id,
            make_call(
                1,
                DOWNLOAD_FIGMA_IMAGES,
                {
                    "fileKey": "ABC123",
                    "localPath": "/tmp/assets",
                    "nodes": [
                        {"nodeId": "1:2", "fileName": "icon.svg"},
                        {"nodeId": "1:3", "fileName": "hero.png"},
                    ],
                },
            ),
        )

        assert response.result == {"content": [{"type": "text", "text": "Success"}]}
        design_client.get_image.assert_any_await("ABC123", "1:2", "icon.svg", "/tmp/assets", "svg")
        design_client.get_image.assert_any_await("ABC123", "1:3", "hero.png", "/tmp/assets", "png")

    @pytest.mark.anyio
    async def test_one_failed_fetch(self, figma_engine, design_client, channel_factory, make_call):
        design_client.get_image.return_value = False
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id,
            make_call(
                1,
                DOWNLOAD_FIGMA_IMAGES,
                {
                    "fileKey": "ABC123",
                    "localPath": "/tmp/assets",
                    "nodes": [{"nodeId": "1:2", "fileName": "icon.svg"}],
                },
            ),
        )

        assert response.result["content"][0]["text"] == "Failed"

    @pytest.mark.anyio
    async def test_partial_failure(self, figma_engine, design_client, channel_factory, make_call):
        design_client.get_image.side_effect = [True, False]
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id,
            make_call(
                1,
                DOWNLOAD_FIGMA_IMAGES,
                {
                    "fileKey": "ABC123",
                    "localPath": "/tmp/assets",
                    "nodes": [
                        {"nodeId": "1:2", "fileName": "a.png"},
                        {"nodeId": "1:3", "fileName": "b.png"},
                    ],
                },
            ),
        )

        assert response.result["content"][0]["text"] == "Failed"

    @pytest.mark.anyio
    async def test_raising_download_counts_as_failure(
        self, figma_engine, design_client, channel_factory, make_call
    ):
        design_client.get_image.side_effect = [True, FigmaAPIError("Figma image render failed: bad id")]
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id,
            make_call(
                1,
                DOWNLOAD_FIGMA_IMAGES,
                {
                    "fileKey": "ABC123",
                    "localPath": "/tmp/assets",
                    "nodes": [
                        {"nodeId": "1:2", "fileName": "a.png"},
                        {"nodeId": "bad", "fileName": "x.png"},
                    ],
                },
            ),
        )

        assert response.result == {"content": [{"type": "text", "text": "Failed"}]}
        assert design_client.get_image.await_count == 2

    @pytest.mark.anyio
    async def test_client_error_before_download_starts(
        self, figma_engine, design_client, channel_factory, make_call
    ):
        design_client.get_image = MagicMock(side_effect=RuntimeError("client closed"))
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id,
            make_call(
                1,
                DOWNLOAD_FIGMA_IMAGES,
                {
                    "fileKey": "ABC123",
                    "localPath": "/tmp/assets",
                    "nodes": [{"nodeId": "1:2", "fileName": "x.png"}],
                },
            ),
        )

        assert response.result == {
            "content": [{"type": "text", "text": "Error downloading images: client closed"}],
            "isError": True,
        }

    @pytest.mark.anyio
    async def test_invalid_node_entry(self, figma_engine, design_client, channel_factory, make_call):
        session = await figma_engine.connect(channel_factory())

        response = await figma_engine.dispatch_message(
            session.id,
            make_call(
                1,
                DOWNLOAD_FIGMA_IMAGES,
                {"fileKey": "ABC123", "localPath": "/tmp", "nodes": [{"nodeId": "1:2"}]},
            ),
        )

        assert response.result["isError"] is True
        assert "nodes[0].fileName: Field required" in response.result["content"][0]["text"]
        design_client.get_image.assert_not_called()


class TestDownloadOverFigmaClient:
    """Run download_figma_images against a FigmaClient on a mock transport."""

    @staticmethod
    def figma_api(cdn_status: int):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.figma.com":
                node_id = request.url.params["ids"]
                return httpx.Response(
                    200,
                    json={"err": None, "images": {node_id: f"https://cdn.figma.example/{node_id}"}},
                )
            return httpx.Response(cdn_status, content=b"\x89PNG")

        return handler

    async def download(self, client: FigmaClient, channel_factory, make_call, local_path: str):
        registry = ToolRegistry()
        register_figma_tools(registry, client)
        engine = ProtocolEngine(registry)
        session = await engine.connect(channel_factory())
        return await engine.dispatch_message(
            session.id,
            make_call(
                1,
                DOWNLOAD_FIGMA_IMAGES,
                {
                    "fileKey": "ABC123",
                    "localPath": local_path,
                    "nodes": [
                        {"nodeId": "1:2", "fileName": "a.png"},
                        {"nodeId": "1:3", "fileName": "b.png"},
                    ],
                },
            ),
        )

    @pytest.mark.anyio
    async def test_image_server_error_reports_failed(self, tmp_path, channel_factory, make_call):
        transport = httpx.MockTransport(self.figma_api(500))
        async with FigmaClient("token", transport=transport) as client:
            response = await self.download(client, channel_factory, make_call, str(tmp_path))

        assert response.result == {"content": [{"type": "text", "text": "Failed"}]}
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.anyio
    async def test_images_saved(self, tmp_path, channel_factory, make_call):
        transport = httpx.MockTransport(self.figma_api(200))
        async with FigmaClient("token", transport=transport) as client:
            response = await self.download(client, channel_factory, make_call, str(tmp_path))

        assert response.result == {"content": [{"type": "text", "text": "Success"}]}
        assert sorted(path.name for path in tmp_path.iterdir()) == ["a.png", "b.png"]
