"""Server configuration.

Resolution order (later overrides earlier):
    1. Built-in defaults (Pydantic model defaults)
    2. ``.env`` file in the working directory (loaded by the CLI)
    3. Environment variables
    4. Command-line options / programmatic overrides

Environment variables:
    FIGMA_API_KEY    Figma personal access token (required)
    HOST, PORT       Bind address for HTTP mode
    NODE_ENV=cli     Selects stdio mode
    FIGMA_MCP_STDIO  Truthy value selects stdio mode
    LOG_LEVEL        Logging level name
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError
from .figma.client import DEFAULT_API_BASE

TRUTHY = ("1", "true", "yes", "on")


class ServerConfig(BaseModel):
    """Runtime configuration for the Figma MCP server."""

    figma_api_key: str = ""
    host: str = "127.0.0.1"
    port: int = Field(default=3333, ge=1, le=65535)
    stdio: bool = False
    figma_api_base: str = DEFAULT_API_BASE
    request_timeout: float = Field(default=30.0, gt=0)
    heartbeat_interval: float = Field(default=30.0, gt=0)
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> ServerConfig:
        """Build a config from environment variables plus explicit overrides.

        Overrides whose value is None are ignored so unset CLI options fall
        through to the environment.

        Raises:
            ConfigError: If a value fails validation
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        if env.get("FIGMA_API_KEY"):
            values["figma_api_key"] = env["FIGMA_API_KEY"]
        if env.get("HOST"):
            values["host"] = env["HOST"]
        if env.get("PORT"):
            values["port"] = env["PORT"]
        if env.get("LOG_LEVEL"):
            values["log_level"] = env["LOG_LEVEL"]
        if env.get("NODE_ENV", "").lower() == "cli" or env.get("FIGMA_MCP_STDIO", "").lower() in TRUTHY:
            values["stdio"] = True

        values.update({key: value for key, value in overrides.items() if value is not None})

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def require_api_key(self) -> str:
        """Return the Figma API key or raise if it is missing."""
        if not self.figma_api_key:
            raise ConfigError(
                "FIGMA_API_KEY is required (set it in the environment, a .env file, "
                "or pass --figma-api-key)"
            )
        return self.figma_api_key

    def masked_api_key(self) -> str:
        """API key suitable for logs: only the last four characters shown."""
        if not self.figma_api_key:
            return "(not set)"
        return f"****{self.figma_api_key[-4:]}"
