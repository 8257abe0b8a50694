"""
CBS Statline MCP Server

A Model Context Protocol server that gives AI assistants access to CBS
Statline, the open data portal of Statistics Netherlands: table search,
table metadata and filtered observation queries.
"""

__version__ = "0.1.0"

# Make key components available at package level
from .server import mcp

__all__ = ["mcp", "__version__"]
