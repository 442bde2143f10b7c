"""Figma MCP Server Application.

Creates the Starlette ASGI application with all routes.

Route organization:
- /health - Health check
- /sse, /messages - MCP over SSE
- /api/sse, /api/messages - Same endpoints for serverless-style deployments
- / and /api - Presence check
- /* - Informational catch-all
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Mount, Route

from .config import ServerConfig
from .figma.client import DesignFileClient, FigmaClient
from .protocol.engine import ProtocolEngine
from .routes import fallback_routes, health_routes, index, sse_routes
from .tools.figma import register_figma_tools
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def build_engine(client: DesignFileClient) -> ProtocolEngine:
    """Create a protocol engine serving the Figma tools backed by ``client``."""
    registry = ToolRegistry()
    register_figma_tools(registry, client)
    return ProtocolEngine(registry)


def create_figma_client(config: ServerConfig) -> FigmaClient:
    """Create the Figma API client described by ``config``.

    Raises:
        ConfigError: If no API key is configured
    """
    return FigmaClient(
        config.require_api_key(),
        base_url=config.figma_api_base,
        timeout=config.request_timeout,
    )


def create_app(
    config: ServerConfig | None = None,
    engine: ProtocolEngine | None = None,
) -> Starlette:
    """Create the Figma MCP server application.

    Called without arguments (as the uvicorn factory) the configuration is
    read from the environment and a FigmaClient-backed engine is built.

    Args:
        config: Server configuration (default: from the environment)
        engine: Pre-built engine, e.g. with a fake design-file client

    Returns:
        Configured Starlette application
    """
    config = config or ServerConfig.from_env()

    client: FigmaClient | None = None
    if engine is None:
        client = create_figma_client(config)
        engine = build_engine(client)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(f"Figma MCP server starting (API key {config.masked_api_key()})")
        try:
            yield
        finally:
            await engine.shutdown()
            if client is not None:
                await client.aclose()

    protocol_routes: list[Route | Mount] = [Route("/", index, methods=["GET"]), *sse_routes]

    routes: list[Route | Mount] = []
    routes.extend(health_routes)
    routes.extend(protocol_routes)
    routes.append(Route("/api", index, methods=["GET"]))
    routes.append(Mount("/api", routes=protocol_routes))
    # Must stay last
    routes.extend(fallback_routes)

    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.config = config
    app.state.engine = engine
    return app
