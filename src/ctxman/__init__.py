"""ctxman - project-local context store with an MCP query server."""

__version__ = "0.1.0"
