"""Tool definitions and the registry that holds them.

Architecture:
- ToolDefinition: Name, description, argument model and handler of one tool
- ToolRegistry: Name -> definition map, frozen once sessions are accepted

Each tool declares its input as a pydantic model. The model validates
incoming arguments and renders the JSON Schema advertised by ``tools/list``.

Usage:
    class EchoArgs(BaseModel):
        text: StrictStr = Field(description="Text to echo")

    registry = ToolRegistry()
    registry.register(ToolDefinition(
        name="echo",
        description="Echo the input back",
        input_model=EchoArgs,
        handler=lambda args: args["text"],
    ))
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from ..errors import DuplicateToolError, RegistryFrozenError, ToolNotFoundError, ToolValidationError
from ..protocol.messages import describe_validation_errors

logger = logging.getLogger(__name__)

# Handler signature: (arguments) -> InvocationResult | str, sync or async
ToolHandler = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True)
class ToolDefinition:
    """Definition of an invocable tool.

    Attributes:
        name: Unique, stable identifier
        description: Human-readable description for the client
        input_model: Pydantic model the arguments are validated against
        handler: Callable that implements the tool
    """

    name: str
    description: str
    input_model: type[BaseModel]
    handler: ToolHandler

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Tool name cannot be empty")
        if not self.description:
            raise ValueError("Tool description cannot be empty")
        if not (isinstance(self.input_model, type) and issubclass(self.input_model, BaseModel)):
            raise ValueError("Tool input model must be a pydantic model")
        if not callable(self.handler):
            raise ValueError("Tool handler must be callable")

    def validate(self, arguments: dict[str, Any]) -> dict[str, Any]:
        """Validate arguments and return the cleaned dict.

        Unknown keys are dropped and unset optional fields are omitted.

        Raises:
            ToolValidationError: Listing every offending field
        """
        try:
            parsed = self.input_model.model_validate(arguments)
        except ValidationError as e:
            raise ToolValidationError(self.name, describe_validation_errors(e)) from None
        return parsed.model_dump(exclude_none=True)

    def to_mcp(self) -> dict[str, Any]:
        """Convert to the MCP ``tools/list`` entry."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_model.model_json_schema(),
        }


class ToolRegistry:
    """Registry of tool definitions.

    Definitions are added at construction time only. Once ``freeze()`` is
    called (the engine does so before accepting its first session) the
    registry is read-only, so concurrent lookups need no locking.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    def register(self, tool: ToolDefinition) -> None:
        """Register a tool definition.

        Raises:
            DuplicateToolError: If a tool with the same name is registered
            RegistryFrozenError: If the registry has been frozen
        """
        if self._frozen:
            raise RegistryFrozenError(tool.name)
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name}")

    def freeze(self) -> None:
        if not self._frozen:
            self._frozen = True
            logger.debug(f"Tool registry frozen with {self.count} tools")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, name: str) -> ToolDefinition:
        """Get a tool definition by name.

        Raises:
            ToolNotFoundError: If no tool has that name
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(name) from None

    def list_tools(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    @property
    def count(self) -> int:
        """Number of registered tools."""
        return len(self._tools)
