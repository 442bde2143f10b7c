"""Wire types for the Model Context Protocol.

MCP is JSON-RPC 2.0. Field names use camelCase where the protocol
requires it (``protocolVersion``, ``isError``, ``mimeType``).
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

# Newest protocol revision this server speaks. Clients requesting an older
# supported revision get that revision echoed back.
LATEST_PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2024-10-07")


# =============================================================================
# JSON-RPC 2.0 Base Types
# =============================================================================


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: str | int
    method: str
    params: dict[str, Any] | None = None


class JsonRpcNotification(BaseModel):
    """JSON-RPC 2.0 notification (no response expected)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] | None = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any | None = None


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 response.

    Exactly one of ``result`` and ``error`` is serialized.
    """

    jsonrpc: Literal["2.0"] = "2.0"
    id: str | int | None
    result: Any | None = None
    error: JsonRpcError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the dict sent over a channel."""
        message: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            message["error"] = self.error.model_dump(exclude_none=True)
        else:
            message["result"] = self.result if self.result is not None else {}
        return message


class JsonRpcErrorCode:
    """Standard JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class JsonRpcProtocolError(Exception):
    """Exception for JSON-RPC protocol errors."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def create_error_response(
    request_id: str | int | None,
    code: int,
    message: str,
    data: Any | None = None,
) -> JsonRpcResponse:
    """Create a JSON-RPC error response."""
    return JsonRpcResponse(
        id=request_id,
        error=JsonRpcError(code=code, message=message, data=data),
    )


def describe_validation_errors(error: ValidationError) -> list[str]:
    """Render each pydantic error as ``"path: message"``.

    Paths use dotted field names and list indexes, e.g. ``nodes[0].fileName``.
    """
    problems = []
    for detail in error.errors():
        path = ""
        for part in detail["loc"]:
            if isinstance(part, int):
                path += f"[{part}]"
            else:
                path += f".{part}" if path else str(part)
        problems.append(f"{path}: {detail['msg']}" if path else detail["msg"])
    return problems


# =============================================================================
# Tool Content
# =============================================================================


class TextContent(BaseModel):
    """A text content block."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """A binary image content block (base64 encoded)."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["image"] = "image"
    data: str
    mime_type: str = Field(alias="mimeType")


ContentBlock = TextContent | ImageContent


class InvocationRequest(BaseModel):
    """One client-issued request to execute a named tool."""

    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_params(cls, params: dict[str, Any] | None) -> InvocationRequest:
        """Build from ``tools/call`` params.

        Raises:
            JsonRpcProtocolError: If ``name`` or ``arguments`` is malformed
        """
        params = params or {}
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise JsonRpcProtocolError(
                JsonRpcErrorCode.INVALID_PARAMS,
                "tools/call requires a string 'name'",
            )
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise JsonRpcProtocolError(
                JsonRpcErrorCode.INVALID_PARAMS,
                "tools/call 'arguments' must be an object",
            )
        return cls(tool_name=name, arguments=arguments)


class InvocationResult(BaseModel):
    """Outcome of a tool invocation: success content or a failure message.

    Serializes to the MCP ``CallToolResult`` shape.
    """

    content: list[ContentBlock] = Field(default_factory=list)
    is_error: bool = False

    @classmethod
    def success(cls, *texts: str) -> InvocationResult:
        return cls(content=[TextContent(text=text) for text in texts])

    @classmethod
    def failure(cls, message: str) -> InvocationResult:
        return cls(content=[TextContent(text=message)], is_error=True)

    @classmethod
    def from_handler_output(cls, output: Any) -> InvocationResult:
        """Normalize whatever a tool handler returned."""
        if isinstance(output, InvocationResult):
            return output
        if isinstance(output, str):
            return cls.success(output)
        if isinstance(output, TextContent | ImageContent):
            return cls(content=[output])
        raise TypeError(
            f"Tool handler returned unsupported type {type(output).__name__}"
        )

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextContent))

    def to_wire(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "content": [
                block.model_dump(by_alias=True) for block in self.content
            ],
        }
        if self.is_error:
            result["isError"] = True
        return result
