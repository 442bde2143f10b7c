"""Protocol Engine - transport-agnostic MCP request handling.

All transports (stdio, SSE) hand their channels to the same engine. The
engine owns the tool registry and the session table, decodes inbound
JSON-RPC messages, dispatches tool calls and writes every response back on
the session that issued the request.

Usage:
    engine = ProtocolEngine(registry)
    session = await engine.connect(channel)

    # Fire-and-forget (HTTP POST path)
    engine.submit(session.id, raw_message)

    # Await the response (tests, embedding)
    response = await engine.dispatch_message(session.id, raw_message)
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import json
import logging
from typing import Any

from pydantic import ValidationError

from .. import __version__
from ..errors import NoActiveSessionError, ToolNotFoundError, ToolValidationError
from ..session import Session, SessionTable
from ..tools.registry import ToolRegistry
from ..transport.base import SessionChannel
from .messages import (
    LATEST_PROTOCOL_VERSION,
    SUPPORTED_PROTOCOL_VERSIONS,
    InvocationRequest,
    InvocationResult,
    JsonRpcErrorCode,
    JsonRpcNotification,
    JsonRpcProtocolError,
    JsonRpcRequest,
    JsonRpcResponse,
    create_error_response,
    describe_validation_errors,
)

logger = logging.getLogger(__name__)

SERVER_NAME = "Figma MCP Server"

# Seconds to let in-flight handlers finish before cancelling them
SHUTDOWN_GRACE = 5.0


class ProtocolEngine:
    """Accepts session channels and dispatches their messages.

    Ordering:
        Messages against one session are processed strictly in arrival
        order by that session's worker. Different sessions never share a
        worker, so a slow tool call only delays its own session.

    Supersede policy:
        Connecting a channel whose session id is already active closes the
        previous session first. Its queued messages fail with
        NoActiveSessionError.
    """

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry
        self._sessions = SessionTable()

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def active_sessions(self) -> list[str]:
        """Ids of all currently registered sessions."""
        return self._sessions.ids()

    def get_session(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    # =========================================================================
    # Session Lifecycle
    # =========================================================================

    async def connect(self, channel: SessionChannel) -> Session:
        """Register a channel as a session, open it and start dispatching.

        The session stays registered until the channel closes.

        Args:
            channel: A not-yet-opened channel

        Returns:
            The new session; its id is the channel's session id
        """
        self._registry.freeze()

        session = Session(channel, self._process)
        channel.on_close(functools.partial(self._release, session))

        previous = self._sessions.put(session)
        if previous is not None:
            logger.warning(f"Session {session.id} superseded by a new connection")
            await previous.close()

        await channel.open()
        session.start()
        logger.info(f"Session {session.id} connected over {channel.transport.value}")
        return session

    async def disconnect(self, session_id: str, drain: bool = False) -> bool:
        """Close a session.

        Args:
            session_id: The session to close
            drain: Process already-queued messages before closing

        Returns:
            True if the session was active
        """
        session = self._sessions.get(session_id)
        if session is None:
            return False
        await session.close(drain=drain)
        return True

    async def shutdown(self, timeout: float = SHUTDOWN_GRACE) -> None:
        """Close every active session and stop its worker.

        Workers still running a handler after ``timeout`` seconds are
        cancelled; their in-flight and queued messages fail with
        NoActiveSessionError.
        """
        sessions = self._sessions.snapshot()
        for session in sessions:
            await session.close()

        workers = [s.worker for s in sessions if s.worker is not None and not s.worker.done()]
        if workers:
            _, pending = await asyncio.wait(workers, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(f"Cancelled {len(pending)} session workers on shutdown")
                await asyncio.gather(*pending, return_exceptions=True)

        if sessions:
            logger.info(f"Closed {len(sessions)} sessions on shutdown")

    def _release(self, session: Session) -> None:
        if self._sessions.discard(session):
            logger.info(f"Session {session.id} disconnected")

    # =========================================================================
    # Message Dispatch
    # =========================================================================

    def submit(
        self, session_id: str | None, raw: str | dict[str, Any]
    ) -> asyncio.Future[JsonRpcResponse | None]:
        """Queue a raw message on a session without waiting for it.

        Raises:
            NoActiveSessionError: If no open session has that id
        """
        return self._sessions.submit(session_id, raw)

    async def dispatch_message(
        self, session_id: str | None, raw: str | dict[str, Any]
    ) -> JsonRpcResponse | None:
        """Dispatch a raw message and wait for its response.

        The response is also written to the session's outbound stream.

        Returns:
            The response, or None for notifications

        Raises:
            NoActiveSessionError: If no open session has that id, or the
                session closed before the message was processed
        """
        return await self.submit(session_id, raw)

    async def _process(self, raw: str | dict[str, Any]) -> JsonRpcResponse | None:
        """Decode and handle one inbound message."""
        if isinstance(raw, str | bytes):
            try:
                message = json.loads(raw)
            except json.JSONDecodeError as e:
                return create_error_response(
                    None, JsonRpcErrorCode.PARSE_ERROR, f"Parse error: {e}"
                )
        else:
            message = raw

        if not isinstance(message, dict):
            return create_error_response(
                None, JsonRpcErrorCode.INVALID_REQUEST, "Message must be a JSON object"
            )

        # Responses to server-initiated requests; this server sends none
        if "method" not in message and ("result" in message or "error" in message):
            logger.debug(f"Ignoring client response for id {message.get('id')}")
            return None

        if message.get("id") is None:
            try:
                notification = JsonRpcNotification.model_validate(message)
            except ValidationError as e:
                logger.warning(f"Ignoring malformed notification: {e.error_count()} errors")
                return None
            self._handle_notification(notification.method, notification.params)
            return None

        try:
            request = JsonRpcRequest.model_validate(message)
        except ValidationError as e:
            return _invalid_request(message.get("id"), e)

        try:
            result = await self._handle_request(request.method, request.params)
            return JsonRpcResponse(id=request.id, result=result)
        except JsonRpcProtocolError as e:
            return create_error_response(request.id, e.code, e.message, e.data)
        except Exception as e:
            logger.exception(f"Error handling request {request.method}: {e}")
            return create_error_response(request.id, JsonRpcErrorCode.INTERNAL_ERROR, str(e))

    def _handle_notification(self, method: str, params: dict[str, Any] | None) -> None:
        if method == "notifications/initialized":
            logger.debug("Client initialized")
        elif method == "notifications/cancelled":
            # Handlers run to completion; nothing to preempt
            logger.debug(f"Client cancelled request {(params or {}).get('requestId')}")
        else:
            logger.debug(f"Ignoring notification {method}")

    async def _handle_request(self, method: str, params: dict[str, Any] | None) -> Any:
        """Route a JSON-RPC request to its handler."""
        params = params or {}

        match method:
            case "initialize":
                return self._initialize(params)
            case "ping":
                return {}
            case "tools/list":
                return {"tools": [tool.to_mcp() for tool in self._registry.list_tools()]}
            case "tools/call":
                request = InvocationRequest.from_params(params)
                result = await self.invoke(request)
                return result.to_wire()
            case _:
                raise JsonRpcProtocolError(
                    JsonRpcErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}"
                )

    def _initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        requested = params.get("protocolVersion")
        version = (
            requested if requested in SUPPORTED_PROTOCOL_VERSIONS else LATEST_PROTOCOL_VERSION
        )
        client_info = params.get("clientInfo") or {}
        logger.info(
            f"Initializing for client {client_info.get('name', 'unknown')} "
            f"(protocol {version})"
        )
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    # =========================================================================
    # Tool Invocation
    # =========================================================================

    async def invoke(self, request: InvocationRequest) -> InvocationResult:
        """Resolve, validate and run a tool. Never raises.

        Unknown tools, invalid arguments and handler errors all come back
        as failure results.
        """
        try:
            tool = self._registry.resolve(request.tool_name)
            arguments = tool.validate(request.arguments)
        except (ToolNotFoundError, ToolValidationError) as e:
            logger.info(f"Rejected call to {request.tool_name}: {e}")
            return InvocationResult.failure(str(e))

        try:
            if inspect.iscoroutinefunction(tool.handler):
                output = await tool.handler(arguments)
            else:
                loop = asyncio.get_running_loop()
                output = await loop.run_in_executor(None, tool.handler, arguments)
                if inspect.isawaitable(output):
                    output = await output
            return InvocationResult.from_handler_output(output)
        except Exception as e:
            logger.exception(f"Tool {tool.name} failed: {e}")
            return InvocationResult.failure(f"Error executing tool {tool.name}: {e}")


def _invalid_request(raw_id: Any, error: ValidationError) -> JsonRpcResponse:
    """Map a request that failed model validation to a JSON-RPC error."""
    request_id = raw_id if isinstance(raw_id, str | int) and not isinstance(raw_id, bool) else None
    bad_params = any(detail["loc"][:1] == ("params",) for detail in error.errors())
    code = JsonRpcErrorCode.INVALID_PARAMS if bad_params else JsonRpcErrorCode.INVALID_REQUEST
    problems = "; ".join(describe_validation_errors(error))
    return create_error_response(request_id, code, f"Invalid request: {problems}")


__all__ = ["ProtocolEngine", "NoActiveSessionError", "SERVER_NAME"]
