"""Main entry point for the ctxman MCP server."""

import argparse
import asyncio
import errno
import sys
from collections.abc import Sequence

import structlog

from ctxman import __version__
from ctxman.config import CtxmanSettings
from ctxman.server.logging import configure_logging
from ctxman.store import ContextStore

logger = structlog.get_logger()


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        Parsed arguments with transport mode and options
    """
    parser = argparse.ArgumentParser(
        description="ctxman MCP Server - project-local context store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ctxman-server                          # Run with stdio transport (default)
  ctxman-server --http                   # Run with HTTP transport on port 6336
  ctxman-server --http --port 8080       # Run with HTTP transport on port 8080
  ctxman-server --workspace ~/proj       # Serve another workspace's store
""",
    )
    parser.add_argument(
        "--http",
        action="store_true",
        help="Run with HTTP+SSE transport (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default=None,
        help="HTTP server host (default: CTXMAN_SERVER_HOST or 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="HTTP server port (default: CTXMAN_SERVER_PORT or 6336)",
    )
    parser.add_argument(
        "--workspace",
        default=None,
        help="Workspace root (default: WORKSPACE_PATH or the current directory)",
    )
    return parser.parse_args(argv)


def build_store(settings: CtxmanSettings) -> ContextStore:
    """Create the store for the configured workspace."""
    return ContextStore(
        path=settings.store_path,
        project_path=str(settings.workspace_path),
        max_contexts=settings.max_contexts,
        format_version=settings.format_version,
    )


def run(
    settings: CtxmanSettings,
    http: bool = False,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Configure logging and run the server until interrupted."""
    configure_logging(log_level=settings.log_level, log_format=settings.log_format)

    transport = "http" if http else "stdio"
    logger.info(
        "ctxman.starting",
        version=__version__,
        transport=transport,
        store_path=str(settings.store_path),
    )

    try:
        if http:
            asyncio.run(
                _run_http_server(
                    settings,
                    host or settings.server_host,
                    port or settings.server_port,
                )
            )
        else:
            asyncio.run(_run_stdio_server(settings))
    except KeyboardInterrupt:
        logger.info("server.shutdown", reason="keyboard_interrupt")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for the MCP server."""
    args = parse_args(argv)

    overrides = {}
    if args.workspace:
        overrides["workspace_path"] = args.workspace
    settings = CtxmanSettings(**overrides)

    run(settings, http=args.http, host=args.host, port=args.port)


async def _run_stdio_server(settings: CtxmanSettings) -> None:
    """Run the MCP server with stdio transport."""
    from mcp.server.stdio import stdio_server

    from ctxman.server.app import create_server

    store = build_store(settings)
    await store.load()
    server, _tool_registry = create_server(store, settings)

    async with stdio_server() as (read_stream, write_stream):
        logger.info("server.ready", transport="stdio")
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )


async def _run_http_server(settings: CtxmanSettings, host: str, port: int) -> None:
    """Run the MCP server with HTTP+SSE transport."""
    from ctxman.server.app import create_server
    from ctxman.server.http import HttpServer

    store = build_store(settings)
    await store.load()
    server, tool_registry = create_server(store, settings)

    http_server = HttpServer(server, tool_registry, host=host, port=port)

    try:
        await http_server.run()
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.error(
                "server.port_in_use",
                port=port,
                error=f"Port {port} is already in use. "
                "Use --port to specify a different port.",
            )
            sys.exit(1)
        raise


if __name__ == "__main__":
    main()
