"""stdio (pipe) binding.

Runs one MCP session over stdin/stdout using newline-delimited JSON:
- Reads JSON-RPC messages from stdin (one per line)
- Writes JSON-RPC responses to stdout (one per line)

The session lives as long as stdin stays open. Logs must go to stderr;
stdout carries protocol traffic only.

Wire format (UTF-8, LF line endings on output, LF or CRLF accepted):
    stdin:  {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}\\n
    stdout: {"jsonrpc": "2.0", "id": 1, "result": {"tools": [...]}}\\n
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import TYPE_CHECKING, Any, BinaryIO

from ..errors import NoActiveSessionError
from ..session import log_dropped
from .base import SessionChannel, TransportMode

if TYPE_CHECKING:
    from ..protocol.engine import ProtocolEngine

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"


class PipeChannel(SessionChannel):
    """Channel bound to the host process's standard output.

    Outbound messages are queued and written by a dedicated writer task;
    the blocking write itself runs in an executor so a stalled reader on
    the other end of the pipe never blocks the event loop.
    """

    transport = TransportMode.STDIO

    def __init__(self, stdout: BinaryIO | None = None, session_id: str | None = None) -> None:
        super().__init__(session_id)
        self._stdout = stdout if stdout is not None else sys.stdout.buffer
        self._outbound: asyncio.Queue[str | None] = asyncio.Queue()
        self._writer_task: asyncio.Task[None] | None = None

    async def _open(self) -> None:
        # stdio needs no handshake frame; the client speaks first
        self._writer_task = asyncio.create_task(self._write_loop(), name="stdio-writer")

    async def _enqueue(self, message: dict[str, Any]) -> None:
        self._outbound.put_nowait(json.dumps(message, ensure_ascii=False))

    async def _shutdown(self) -> None:
        # Flush whatever was queued before close
        self._outbound.put_nowait(None)
        if self._writer_task is not None:
            await self._writer_task

    async def _write_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            line = await self._outbound.get()
            if line is None:
                break
            try:
                await loop.run_in_executor(None, self._write_line, line)
            except (BrokenPipeError, ValueError) as e:
                logger.warning(f"stdout closed, dropping output: {e}")
                self._mark_closed()
                break

    def _write_line(self, line: str) -> None:
        self._stdout.write((line + NEWLINE).encode(ENCODING))
        self._stdout.flush()


async def _read_line(stdin: BinaryIO) -> str | None:
    """Read a line from stdin without blocking the event loop."""
    loop = asyncio.get_running_loop()
    raw = await loop.run_in_executor(None, stdin.readline)
    if not raw:
        return None
    return raw.decode(ENCODING, errors="replace")


async def run_stdio_server(
    engine: ProtocolEngine,
    stdin: BinaryIO | None = None,
    stdout: BinaryIO | None = None,
) -> None:
    """Serve a single session over stdio until stdin closes.

    Args:
        engine: The protocol engine to connect the pipe channel to
        stdin: Binary input stream (default: sys.stdin.buffer)
        stdout: Binary output stream (default: sys.stdout.buffer)
    """
    stdin = stdin if stdin is not None else sys.stdin.buffer
    channel = PipeChannel(stdout)
    await engine.connect(channel)
    logger.info("Figma MCP server ready on stdio")

    try:
        while True:
            line = await _read_line(stdin)
            if line is None:
                logger.info("stdin closed, shutting down")
                break

            # Normalize line endings and strip a leading UTF-8 BOM
            line = line.strip().lstrip("\ufeff")
            if not line:
                continue

            try:
                future = engine.submit(channel.session_id, line)
            except NoActiveSessionError:
                logger.warning("stdio session closed, ignoring further input")
                break
            future.add_done_callback(log_dropped)
    finally:
        await engine.disconnect(channel.session_id, drain=True)
