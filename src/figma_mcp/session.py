"""Session management.

A Session is the server-side record of one open channel. Each session owns
an inbound FIFO queue drained by a single worker task, so messages against
the same session are processed, and their results emitted, in arrival
order. Separate sessions run on separate tasks and interleave freely.

The SessionTable maps session ids to sessions. It is the only shared
mutable state in the server; every access goes through one lock and no
critical section awaits.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import NoActiveSessionError
from .protocol.messages import JsonRpcErrorCode, JsonRpcResponse, create_error_response

if TYPE_CHECKING:
    from .transport.base import SessionChannel

logger = logging.getLogger(__name__)

# Processes one raw inbound message, returning the response to emit (if any)
MessageProcessor = Callable[[str | dict[str, Any]], Coroutine[Any, Any, JsonRpcResponse | None]]


@dataclass
class _Pending:
    raw: str | dict[str, Any]
    future: asyncio.Future[JsonRpcResponse | None]


class Session:
    """One open channel plus its ordered dispatch path."""

    def __init__(self, channel: SessionChannel, processor: MessageProcessor) -> None:
        self.channel = channel
        self._processor = processor
        self._inbound: asyncio.Queue[_Pending | None] = asyncio.Queue()
        self._worker: asyncio.Task[None] | None = None
        self._accepting = True
        channel.on_close(self._stop)

    @property
    def id(self) -> str:
        return self.channel.session_id

    @property
    def open(self) -> bool:
        return self._accepting and self.channel.is_open

    @property
    def worker(self) -> asyncio.Task[None] | None:
        return self._worker

    def start(self) -> None:
        """Start the worker task. Call once the channel is open."""
        if self._worker is None:
            self._worker = asyncio.create_task(self._run(), name=f"session-{self.id}")

    def submit(self, raw: str | dict[str, Any]) -> asyncio.Future[JsonRpcResponse | None]:
        """Queue a raw message; the future resolves with its response.

        Raises:
            NoActiveSessionError: If the session no longer accepts messages
        """
        if not self.open:
            raise NoActiveSessionError(self.id)
        future: asyncio.Future[JsonRpcResponse | None] = (
            asyncio.get_running_loop().create_future()
        )
        self._inbound.put_nowait(_Pending(raw=raw, future=future))
        return future

    async def close(self, drain: bool = False) -> None:
        """Close the session.

        Args:
            drain: Process already-queued messages before closing the channel
        """
        if drain and not self.channel.closed:
            self._stop()
            if self._worker is not None:
                await self._worker
        await self.channel.close()

    def _stop(self) -> None:
        if not self._accepting:
            return
        self._accepting = False
        self._inbound.put_nowait(None)

    async def _run(self) -> None:
        item: _Pending | None = None
        try:
            while True:
                item = await self._inbound.get()
                if item is None:
                    break

                if not self.channel.is_open:
                    # Channel went away while this message waited in the queue
                    self._fail(item)
                    continue

                try:
                    response = await self._processor(item.raw)
                except Exception as e:
                    logger.exception(f"Unhandled error processing message on session {self.id}")
                    response = create_error_response(
                        None, JsonRpcErrorCode.INTERNAL_ERROR, str(e)
                    )

                if response is not None:
                    # Dropped silently by the channel if it closed mid-handler
                    await self.channel.send(response.to_wire())

                if not item.future.done():
                    item.future.set_result(response)
                item = None
        finally:
            # Cancelled mid-handler, or stopped with messages still queued
            self._accepting = False
            if item is not None:
                self._fail(item)
            while not self._inbound.empty():
                leftover = self._inbound.get_nowait()
                if leftover is not None:
                    self._fail(leftover)

        logger.debug(f"Session {self.id} worker finished")

    def _fail(self, item: _Pending) -> None:
        if not item.future.done():
            item.future.set_exception(NoActiveSessionError(self.id))


def log_dropped(future: asyncio.Future[Any]) -> None:
    """Done-callback for fire-and-forget submissions.

    Retrieves the outcome so dropped messages are logged rather than
    reported as never-retrieved exceptions.
    """
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.info(f"Message dropped: {error}")


class SessionTable:
    """Thread-safe map of session id -> open session."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def put(self, session: Session) -> Session | None:
        """Insert a session, returning the one it superseded (if any)."""
        with self._lock:
            previous = self._sessions.get(session.id)
            self._sessions[session.id] = session
        return previous if previous is not session else None

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            return self._sessions.get(session_id)

    def submit(
        self, session_id: str | None, raw: str | dict[str, Any]
    ) -> asyncio.Future[JsonRpcResponse | None]:
        """Look up an open session and queue a message on it atomically.

        Raises:
            NoActiveSessionError: If no open session has that id
        """
        with self._lock:
            session = self._sessions.get(session_id) if session_id else None
            if session is None or not session.open:
                raise NoActiveSessionError(session_id)
            return session.submit(raw)

    def discard(self, session: Session) -> bool:
        """Remove a session only if the table still maps its id to it."""
        with self._lock:
            if self._sessions.get(session.id) is session:
                del self._sessions[session.id]
                return True
            return False

    def snapshot(self) -> list[Session]:
        with self._lock:
            return list(self._sessions.values())

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions.keys())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions
