"""Nylas MCP Proxy.

Bridge a stdio MCP client (Claude Desktop, Cursor, etc.) to the hosted
Nylas MCP server, handling authentication, session affinity and default
grant selection on the client's behalf.
"""

from nylas_mcp_proxy.__version__ import __version__

__all__ = ["__version__"]
