"""MCP server implementation.

Import the server pieces explicitly when needed:

    from ctxman.server.main import main, run
    from ctxman.server.app import create_server
"""

from ctxman.server.logging import configure_logging

__all__ = [
    "configure_logging",
]
