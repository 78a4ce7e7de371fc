"""Tool facade for the ctxman MCP server and CLI."""

from .context import ToolFunc, get_context_tools
from .errors import ParameterError, ToolError, error_response, error_type

__all__ = [
    "get_context_tools",
    "ToolFunc",
    # Errors
    "ToolError",
    "ParameterError",
    "error_response",
    "error_type",
]
