"""MCP over SSE endpoints.

- GET  /sse                      Open a session; streams responses as SSE
- POST /messages?sessionId=<id>  Send one JSON-RPC message to that session

The POST returns as soon as the message is queued (202). The response to
the message arrives asynchronously on the session's event stream.
"""

from __future__ import annotations

import logging

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from ..errors import NoActiveSessionError
from ..session import log_dropped
from ..transport.sse import StreamChannel

logger = logging.getLogger(__name__)


async def open_stream(request: Request) -> Response:
    """Open a long-lived event stream and register it as a session."""
    engine = request.app.state.engine
    config = request.app.state.config

    # Advertise the messages endpoint under the same mount the client used
    root_path = request.scope.get("root_path", "").rstrip("/")
    channel = StreamChannel(
        endpoint=f"{root_path}/messages",
        heartbeat_interval=config.heartbeat_interval,
    )
    await engine.connect(channel)
    logger.info(f"New SSE connection established: {channel.session_id}")
    return channel.response(request)


async def post_message(request: Request) -> Response:
    """Forward a POSTed JSON-RPC message to its session."""
    engine = request.app.state.engine

    session_id = request.query_params.get("sessionId")
    if not session_id:
        return PlainTextResponse("Missing sessionId parameter", status_code=400)

    session = engine.get_session(session_id)
    if session is None or not session.open:
        logger.info(f"Message for inactive session {session_id} rejected")
        return PlainTextResponse("No SSE connection established", status_code=400)

    try:
        body = await request.json()
    except ValueError:
        return PlainTextResponse("Invalid JSON", status_code=400)

    try:
        future = engine.submit(session_id, body)
    except NoActiveSessionError:
        # Closed between the check above and the submit
        return PlainTextResponse("No SSE connection established", status_code=400)

    future.add_done_callback(log_dropped)
    return PlainTextResponse("Accepted", status_code=202)


sse_routes = [
    Route("/sse", open_stream, methods=["GET"]),
    Route("/messages", post_message, methods=["POST"]),
]
