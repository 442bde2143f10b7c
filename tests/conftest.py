"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel, Field, StrictStr

from figma_mcp.figma.simplify import GlobalVars, SimplifiedDesign
from figma_mcp.protocol.engine import ProtocolEngine
from figma_mcp.tools.figma import register_figma_tools
from figma_mcp.tools.registry import ToolDefinition, ToolRegistry
from figma_mcp.transport.base import SessionChannel, TransportMode


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


# =============================================================================
# Channels
# =============================================================================


class RecordingChannel(SessionChannel):
    """In-memory channel that keeps every message sent to it."""

    transport = TransportMode.STDIO

    def __init__(self, session_id: str | None = None) -> None:
        super().__init__(session_id)
        self.sent: list[dict[str, Any]] = []
        self.opened = False
        self.shut_down = False

    async def _open(self) -> None:
        self.opened = True

    async def _enqueue(self, message: dict[str, Any]) -> None:
        self.sent.append(message)

    async def _shutdown(self) -> None:
        self.shut_down = True

    @property
    def ids(self) -> list[Any]:
        return [message.get("id") for message in self.sent]


@pytest.fixture
def channel_factory():
    """Factory for recording channels."""
    return RecordingChannel


# =============================================================================
# Tools
# =============================================================================


async def echo_handler(arguments: dict[str, Any]) -> str:
    return arguments["text"]


class EchoArgs(BaseModel):
    text: StrictStr = Field(description="Text to echo")


@pytest.fixture
def echo_tool() -> ToolDefinition:
    return ToolDefinition(
        name="echo",
        description="Echo the input back",
        input_model=EchoArgs,
        handler=echo_handler,
    )


@pytest.fixture
def registry(echo_tool: ToolDefinition) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(echo_tool)
    return registry


@pytest.fixture
def engine(registry: ToolRegistry) -> ProtocolEngine:
    return ProtocolEngine(registry)


# =============================================================================
# Figma
# =============================================================================


@pytest.fixture
def sample_design() -> SimplifiedDesign:
    return SimplifiedDesign(
        name="Landing Page",
        last_modified="2024-05-01T10:00:00Z",
        thumbnail_url="https://figma.example/thumb.png",
        nodes=[{"id": "1:2", "name": "Hero", "type": "FRAME"}],
        global_vars=GlobalVars(styles={"fill_ABC123": ["#FFFFFF"]}),
    )


@pytest.fixture
def design_client(sample_design: SimplifiedDesign) -> MagicMock:
    """A DesignFileClient double with async methods."""
    client = MagicMock()
    client.get_file = AsyncMock(return_value=sample_design)
    client.get_node = AsyncMock(return_value=sample_design)
    client.get_image = AsyncMock(return_value=True)
    return client


@pytest.fixture
def figma_engine(design_client: MagicMock) -> ProtocolEngine:
    registry = ToolRegistry()
    register_figma_tools(registry, design_client)
    return ProtocolEngine(registry)


def call_message(request_id: int, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Build a tools/call request."""
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments},
    }


@pytest.fixture
def make_call():
    return call_message
