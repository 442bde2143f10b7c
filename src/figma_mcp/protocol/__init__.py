"""Transport-agnostic protocol layer.

Defines the MCP (JSON-RPC 2.0) message types and the engine that
dispatches them. Every transport (stdio, SSE) feeds the same engine.

Key concepts:
- Requests: Client -> server messages with an ``id``; exactly one response each
- Notifications: Client -> server messages without an ``id``; never answered
- Invocations: ``tools/call`` requests, answered with a success or failure result
"""

from .messages import (
    LATEST_PROTOCOL_VERSION,
    ImageContent,
    InvocationRequest,
    InvocationResult,
    JsonRpcError,
    JsonRpcErrorCode,
    JsonRpcNotification,
    JsonRpcProtocolError,
    JsonRpcRequest,
    JsonRpcResponse,
    TextContent,
    describe_validation_errors,
)

__all__ = [
    "LATEST_PROTOCOL_VERSION",
    "ImageContent",
    "InvocationRequest",
    "InvocationResult",
    "JsonRpcError",
    "JsonRpcErrorCode",
    "JsonRpcNotification",
    "JsonRpcProtocolError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "TextContent",
    "describe_validation_errors",
]
