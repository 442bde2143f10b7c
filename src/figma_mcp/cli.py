"""Figma MCP Server CLI.

Default mode is HTTP (SSE). Use --stdio, or set NODE_ENV=cli, to serve a
single client over stdin/stdout.

Usage:
    figma-mcp                          # HTTP server on 127.0.0.1:3333
    figma-mcp --port 8080              # HTTP with custom port
    figma-mcp --stdio                  # Stdio mode (IDE/subprocess)
    figma-mcp --health                 # Check HTTP server health

Settings are also read from the environment and from a .env file in the
working directory; command-line options win.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import click
import httpx
from dotenv import find_dotenv, load_dotenv

from .config import ServerConfig
from .errors import ConfigError

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@click.command()
@click.option("--stdio", "stdio_mode", is_flag=True, help="Serve one client over stdin/stdout")
@click.option("--host", default=None, help="Host to bind to (HTTP mode) [env: HOST]")
@click.option("--port", type=int, default=None, help="Port to bind to (HTTP mode) [env: PORT]")
@click.option(
    "--figma-api-key",
    default=None,
    help="Figma personal access token [env: FIGMA_API_KEY]",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Logging level [env: LOG_LEVEL]",
)
@click.option("--health", "health_check", is_flag=True, help="Check HTTP server health and exit")
@click.option("--health-url", default=None, help="Server URL for health check")
def main(
    stdio_mode: bool,
    host: str | None,
    port: int | None,
    figma_api_key: str | None,
    log_level: str | None,
    health_check: bool,
    health_url: str | None,
) -> None:
    """Figma MCP Server - Figma design data for AI coding assistants."""
    load_dotenv(find_dotenv(usecwd=True))

    try:
        config = ServerConfig.from_env(
            stdio=True if stdio_mode else None,
            host=host,
            port=port,
            figma_api_key=figma_api_key,
            log_level=log_level,
        )
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    _configure_logging(config.log_level)

    if health_check:
        _do_health_check(health_url or f"http://{config.host}:{config.port}")
        return

    try:
        config.require_api_key()
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    if config.stdio:
        _run_stdio_server(config)
    else:
        _run_http_server(config)


def _configure_logging(level: str) -> None:
    # stdout carries protocol traffic in stdio mode
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _do_health_check(url: str) -> None:
    """Check server health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
                if response.status_code == 200:
                    data = response.json()
                    click.echo(f"Server is healthy: {data}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


def _run_http_server(config: ServerConfig) -> None:
    """Run HTTP server mode (default)."""
    import uvicorn

    # The app factory reads its configuration from the environment
    os.environ["FIGMA_API_KEY"] = config.figma_api_key
    os.environ["LOG_LEVEL"] = config.log_level

    click.echo(f"Starting Figma MCP server on http://{config.host}:{config.port}", err=True)
    click.echo(f"  SSE endpoint: http://{config.host}:{config.port}/sse", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "figma_mcp.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


def _run_stdio_server(config: ServerConfig) -> None:
    """Run stdio server mode."""
    from .app import build_engine, create_figma_client
    from .transport.stdio import run_stdio_server

    async def serve() -> None:
        async with create_figma_client(config) as client:
            await run_stdio_server(build_engine(client))

    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Shutting down")


if __name__ == "__main__":
    main()
