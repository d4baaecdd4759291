"""Stdio to HTTP/SSE proxy for the Nylas MCP server.

Transport: Stdio (for Claude Desktop, Cursor and other MCP clients)
Upstream: https://mcp.us.nylas.com or https://mcp.eu.nylas.com
Authentication: Nylas API key as a bearer token
"""

from nylas_mcp_proxy.proxy.server import NylasMCPProxy, main
from nylas_mcp_proxy.proxy.session import SessionState
from nylas_mcp_proxy.proxy.transport import ProxyError, TransportError, UpstreamError


__all__ = [
    "NylasMCPProxy",
    "ProxyError",
    "SessionState",
    "TransportError",
    "UpstreamError",
    "main",
]
