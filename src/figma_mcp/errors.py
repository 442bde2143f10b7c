"""Exception hierarchy for the Figma MCP server.

    FigmaMCPError
    ├── RegistryError
    │   ├── DuplicateToolError(name)
    │   └── RegistryFrozenError(name)
    ├── ToolNotFoundError(name)
    ├── ToolValidationError(tool_name, fields)
    ├── NoActiveSessionError(session_id)
    ├── ConfigError
    └── FigmaAPIError(status_code)

Registry errors are raised at startup and are fatal. Everything else is
reported back to the caller and never terminates a session.
"""

from __future__ import annotations


class FigmaMCPError(Exception):
    """Base exception for all server errors."""


# =============================================================================
# Registry Errors
# =============================================================================


class RegistryError(FigmaMCPError):
    """Base for misconfigured tool registries."""


class DuplicateToolError(RegistryError):
    """A tool with the same name is already registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' already registered")


class RegistryFrozenError(RegistryError):
    """Registration attempted after the engine started accepting sessions."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Cannot register tool '{name}': registry is frozen")


# =============================================================================
# Dispatch Errors
# =============================================================================


class ToolNotFoundError(FigmaMCPError):
    """No tool is registered under the requested name."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool {name} not found")


class ToolValidationError(FigmaMCPError):
    """Arguments did not match the tool's parameter schema.

    Attributes:
        tool_name: The tool whose schema rejected the arguments
        fields: One "path: problem" entry per offending field
    """

    def __init__(self, tool_name: str, fields: list[str]) -> None:
        self.tool_name = tool_name
        self.fields = fields
        details = "; ".join(fields)
        super().__init__(f"Invalid arguments for tool {tool_name}: {details}")


class NoActiveSessionError(FigmaMCPError):
    """A message arrived for a session that is not open."""

    def __init__(self, session_id: str | None) -> None:
        self.session_id = session_id
        super().__init__(f"No active session: {session_id}")


# =============================================================================
# Environment Errors
# =============================================================================


class ConfigError(FigmaMCPError):
    """Invalid or incomplete server configuration."""


class FigmaAPIError(FigmaMCPError):
    """The Figma REST API returned an error or an unusable payload."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        if status_code is not None:
            message = f"{message} (HTTP {status_code})"
        super().__init__(message)
