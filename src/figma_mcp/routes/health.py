"""Health check and informational endpoints.

These routes perform no protocol work; they only report that the server
is up.
"""

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

RUNNING_MESSAGE = "Figma MCP Server is running!"
FALLBACK_MESSAGE = (
    "Figma MCP Server API - Use /api/sse for SSE connections and /api/messages for messages"
)


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "ok"})


async def index(request: Request) -> PlainTextResponse:
    """Presence check at the root of each mount."""
    return PlainTextResponse(RUNNING_MESSAGE)


async def fallback(request: Request) -> PlainTextResponse:
    """Catch-all route pointing clients at the protocol endpoints."""
    return PlainTextResponse(FALLBACK_MESSAGE)


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]

fallback_routes = [
    Route("/{path:path}", fallback, methods=["GET"]),
]
