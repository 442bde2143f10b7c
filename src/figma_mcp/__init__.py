"""Figma MCP Server.

Serves Figma design data to MCP clients over stdio or HTTP (SSE).

Usage:
    from figma_mcp import FigmaClient, build_engine, create_app

    app = create_app()  # config from the environment

    async with FigmaClient(api_key) as client:
        await run_stdio_server(build_engine(client))
"""

__version__ = "0.1.5"

from .app import build_engine, create_app  # noqa: E402
from .config import ServerConfig  # noqa: E402
from .figma import FigmaClient  # noqa: E402
from .protocol.engine import ProtocolEngine  # noqa: E402
from .tools import ToolRegistry  # noqa: E402
from .transport import run_stdio_server  # noqa: E402

__all__ = [
    "__version__",
    "FigmaClient",
    "ProtocolEngine",
    "ServerConfig",
    "ToolRegistry",
    "build_engine",
    "create_app",
    "run_stdio_server",
]
