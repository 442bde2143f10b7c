"""Server-Sent Events (SSE) binding.

A StreamChannel is bound to one long-lived HTTP response. The handshake
frame tells the client where to POST its messages, including the session
id used to correlate them:

    event: endpoint
    data: /messages?sessionId=3f2a...

Responses are then streamed as ``message`` events:

    event: message
    data: {"jsonrpc": "2.0", "id": 1, "result": {...}}

Comment lines (``: ping``) are sent periodically to keep proxies from
closing an idle connection.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from starlette.requests import Request
from starlette.responses import StreamingResponse

from .base import SessionChannel, TransportMode

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


def format_sse(data: str, event: str | None = None) -> str:
    """Format one SSE frame."""
    lines = []
    if event:
        lines.append(f"event: {event}")
    for line in data.splitlines() or [""]:
        lines.append(f"data: {line}")
    return "\n".join(lines) + "\n\n"


class StreamChannel(SessionChannel):
    """Channel bound to one HTTP event-stream response.

    ``send`` only appends to an in-memory queue; the response generator
    returned by ``events()`` drains it on the connection's own task.
    """

    transport = TransportMode.SSE

    def __init__(
        self,
        endpoint: str = "/messages",
        heartbeat_interval: float = 30.0,
        session_id: str | None = None,
    ) -> None:
        super().__init__(session_id)
        self.endpoint = endpoint
        self.heartbeat_interval = heartbeat_interval
        self._outbound: asyncio.Queue[str | None] = asyncio.Queue()

    @property
    def message_url(self) -> str:
        """Where the client must POST messages for this session."""
        separator = "&" if "?" in self.endpoint else "?"
        return f"{self.endpoint}{separator}sessionId={self.session_id}"

    async def _open(self) -> None:
        self._outbound.put_nowait(format_sse(self.message_url, event="endpoint"))

    async def _enqueue(self, message: dict[str, Any]) -> None:
        self._outbound.put_nowait(format_sse(json.dumps(message), event="message"))

    async def _shutdown(self) -> None:
        self._outbound.put_nowait(None)

    async def events(self, request: Request | None = None) -> AsyncIterator[str]:
        """Yield SSE frames until the channel closes or the client leaves.

        Args:
            request: The incoming request (for disconnect detection)
        """
        try:
            while True:
                try:
                    frame = await asyncio.wait_for(
                        self._outbound.get(), timeout=self.heartbeat_interval
                    )
                except TimeoutError:
                    if request is not None and await request.is_disconnected():
                        break
                    yield ": ping\n\n"
                    continue

                if frame is None:
                    break
                yield frame
        finally:
            # Runs on disconnect/cancellation too, so nothing here may await
            self._mark_closed()

    def response(self, request: Request | None = None) -> StreamingResponse:
        """Build the streaming HTTP response for this channel."""
        return StreamingResponse(
            self.events(request),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )
