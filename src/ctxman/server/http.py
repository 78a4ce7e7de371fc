"""HTTP transport for the ctxman MCP server using Starlette + SSE.

Routes:
- /health: GET health check
- /sse: MCP clients connect here (GET opens the stream, POST delivers
  client messages)
- /api/call: POST direct tool call for scripts that do not speak MCP
"""

import json
from typing import Any

import structlog
from mcp.server import Server
from mcp.server.sse import SseServerTransport
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ctxman import __version__
from ctxman.server.app import SERVER_NAME, dispatch
from ctxman.tools import ToolFunc

logger = structlog.get_logger()

# HTTP status for each error payload type returned by /api/call
ERROR_STATUS = {
    "parameter_error": 400,
    "validation_error": 400,
    "not_found": 404,
    "storage_error": 500,
    "internal_error": 500,
}


class HttpServer:
    """HTTP server wrapper for the MCP server."""

    def __init__(
        self,
        server: Server,
        tool_registry: dict[str, ToolFunc],
        host: str = "127.0.0.1",
        port: int = 6336,
    ) -> None:
        """Initialize HTTP server.

        Args:
            server: MCP Server instance with tools registered
            tool_registry: Dictionary mapping tool names to async functions
            host: Host to bind to (default: 127.0.0.1)
            port: Port to bind to (default: 6336)
        """
        self.server = server
        self.tool_registry = tool_registry
        self.host = host
        self.port = port
        self.sse_transport = SseServerTransport("/sse")

    async def health_handler(self, request: Request) -> JSONResponse:
        """Return server status and version."""
        return JSONResponse({
            "status": "healthy",
            "server": SERVER_NAME,
            "version": __version__,
        })

    def sse_asgi_app(self) -> Any:
        """Return ASGI app that handles both GET (SSE) and POST (messages)."""

        async def app(scope: Any, receive: Any, send: Any) -> None:
            method = scope.get("method", "GET")

            if method == "GET":
                logger.info("http.sse_connection_started")
                async with self.sse_transport.connect_sse(
                    scope, receive, send
                ) as (read_stream, write_stream):
                    await self.server.run(
                        read_stream,
                        write_stream,
                        self.server.create_initialization_options(),
                    )
                logger.info("http.sse_connection_closed")
            elif method == "POST":
                await self.sse_transport.handle_post_message(scope, receive, send)
            else:
                response = Response("Method not allowed", status_code=405)
                await response(scope, receive, send)

        return app

    async def api_call_handler(self, request: Request) -> JSONResponse:
        """Direct tool call endpoint (POST /api/call).

        Request format:
        {
            "params": {
                "name": "tool_name",
                "arguments": {...}
            }
        }

        Responds with the tool result, or ``{"error": {"type", "message"}}``
        and a 4xx/5xx status.
        """
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("api.invalid_json", error=str(e))
            return _error_json("parameter_error", f"Invalid JSON: {e}")

        params = body.get("params") if isinstance(body, dict) else None
        if not isinstance(params, dict) or not params.get("name"):
            return _error_json("parameter_error", "Missing tool name in params.name")

        tool_name = params["name"]
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            return _error_json("parameter_error", "params.arguments must be an object")

        logger.debug("api.tool_call", tool=tool_name)

        result = await dispatch(self.tool_registry, tool_name, arguments)
        if "error" in result:
            error_kind = result["error"]["type"]
            if tool_name not in self.tool_registry:
                return JSONResponse(result, status_code=404)
            return JSONResponse(result, status_code=ERROR_STATUS.get(error_kind, 500))
        return JSONResponse(result)

    def create_app(self) -> Any:
        """Create the ASGI application with routes and middleware.

        /sse is intercepted before Starlette to avoid its trailing slash
        redirect.
        """
        routes = [
            Route("/health", self.health_handler, methods=["GET"]),
            Route("/api/call", self.api_call_handler, methods=["POST"]),
        ]

        middleware = [
            Middleware(
                CORSMiddleware,
                allow_origins=["*"],
                allow_methods=["GET", "POST"],
                allow_headers=["*"],
            )
        ]

        starlette_app = Starlette(routes=routes, middleware=middleware)
        sse_app = self.sse_asgi_app()

        async def app(scope: Any, receive: Any, send: Any) -> None:
            if scope.get("type") == "http" and scope.get("path") == "/sse":
                await sse_app(scope, receive, send)
            else:
                await starlette_app(scope, receive, send)

        return app

    async def run(self) -> None:
        """Serve until uvicorn receives SIGINT or SIGTERM."""
        import uvicorn

        config = uvicorn.Config(
            self.create_app(),
            host=self.host,
            port=self.port,
            log_level="warning",  # Reduce uvicorn noise
        )
        server = uvicorn.Server(config)

        logger.info("http.server_starting", host=self.host, port=self.port)
        try:
            await server.serve()
        finally:
            logger.info("http.shutdown_complete")


def _error_json(error_type: str, message: str) -> JSONResponse:
    return JSONResponse(
        {"error": {"type": error_type, "message": message}},
        status_code=ERROR_STATUS[error_type],
    )
