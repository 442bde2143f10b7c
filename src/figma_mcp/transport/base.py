"""Session channel abstraction.

A channel is one logical duplex connection to a single client. The
protocol engine only ever sees this interface, so the same dispatch logic
serves pipe (stdio) and network (SSE) clients.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class TransportMode(str, Enum):
    """Available transport modes."""

    STDIO = "stdio"  # stdin/stdout (for subprocess/IPC)
    SSE = "sse"  # Server-Sent Events stream + POSTed messages


CloseCallback = Callable[[], None]


class SessionChannel(ABC):
    """Abstract duplex channel to one client.

    Subclasses implement the carrier-specific handshake, outbound queueing
    and shutdown. ``send`` only enqueues: a slow client must never stall the
    caller. ``close`` is idempotent and fires the registered close callbacks
    exactly once.
    """

    transport: TransportMode

    def __init__(self, session_id: str | None = None) -> None:
        self.session_id = session_id or uuid.uuid4().hex
        self._opened = False
        self._closed = False
        self._close_callbacks: list[CloseCallback] = []

    @property
    def is_open(self) -> bool:
        return self._opened and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def on_close(self, callback: CloseCallback) -> None:
        """Register a callback run synchronously when the channel closes."""
        if self._closed:
            callback()
            return
        self._close_callbacks.append(callback)

    async def open(self) -> None:
        """Open the channel and write the carrier's handshake."""
        if self._opened:
            return
        self._opened = True
        await self._open()
        logger.debug(f"{self.transport.value} channel {self.session_id} opened")

    async def send(self, message: dict[str, Any]) -> None:
        """Queue a JSON message for delivery. No-op once closed."""
        if self._closed:
            logger.debug(f"Dropping message for closed channel {self.session_id}")
            return
        await self._enqueue(message)

    async def close(self) -> None:
        """Close the channel. Safe to call more than once."""
        if self._closed:
            return
        self._mark_closed()
        await self._shutdown()

    def _mark_closed(self) -> None:
        """Flag the channel closed and run close callbacks without awaiting."""
        if self._closed:
            return
        self._closed = True
        callbacks, self._close_callbacks = self._close_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception(f"Error in close callback for channel {self.session_id}")
        logger.debug(f"{self.transport.value} channel {self.session_id} closed")

    @abstractmethod
    async def _open(self) -> None:
        """Write the handshake and start any I/O tasks."""
        ...

    @abstractmethod
    async def _enqueue(self, message: dict[str, Any]) -> None:
        """Queue an outbound message on the channel's own I/O path."""
        ...

    @abstractmethod
    async def _shutdown(self) -> None:
        """Release carrier resources after the channel is marked closed."""
        ...
