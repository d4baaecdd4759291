"""Stdio MCP proxy for the hosted Nylas MCP server.

Reads newline-delimited JSON-RPC from stdin, answers what it can locally,
forwards everything else to the Nylas MCP endpoint and writes exactly one
line per reply to stdout. Requests are handled strictly one at a time, so
replies come out in the order requests came in.
"""

import asyncio
import logging
import sys
from collections.abc import Collection
from typing import BinaryIO

import httpx
from mcp.types import INTERNAL_ERROR

from nylas_mcp_proxy.config import DEFAULT_GRANT_TOOLS, DEFAULT_TIMEOUT, ProxyConfig, get_mcp_endpoint
from nylas_mcp_proxy.grants.models import GrantStore
from nylas_mcp_proxy.proxy.interceptor import handle_local_tool_call
from nylas_mcp_proxy.proxy.messages import RPCRequest, error_response, parse_request
from nylas_mcp_proxy.proxy.responses import rewrite_response
from nylas_mcp_proxy.proxy.rewriter import inject_default_grant
from nylas_mcp_proxy.proxy.session import SessionState
from nylas_mcp_proxy.proxy.transport import UpstreamTransport

logger = logging.getLogger(__name__)

# Tool results (attachments, long threads) can make for very long lines
MAX_LINE_BYTES = 64 * 1024 * 1024
LINE_TOO_LONG = "message exceeds the maximum line length"


async def _stdin_reader() -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=MAX_LINE_BYTES)
    protocol = asyncio.StreamReaderProtocol(reader)
    await loop.connect_read_pipe(lambda: protocol, sys.stdin)
    return reader


async def _read_line(reader: asyncio.StreamReader) -> bytes | None:
    """Read one newline-terminated line.

    Returns:
        The line, b"" at end of input, or None when the line was longer
        than the reader's limit. An oversized line is consumed and dropped.
    """
    try:
        return await reader.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        return e.partial
    except asyncio.LimitOverrunError as e:
        consumed = e.consumed

    while True:
        await reader.readexactly(consumed)
        try:
            await reader.readuntil(b"\n")
            return None
        except asyncio.IncompleteReadError:
            return None
        except asyncio.LimitOverrunError as e:
            consumed = e.consumed


class NylasMCPProxy:
    """Bridges a stdio MCP client to the Nylas MCP server.

    Handles for the client:
    - Authentication (bearer API key on every request)
    - Session affinity (Mcp-Session-Id captured and replayed)
    - Default grant injection for tools that need a grant_id
    - Local answers to get_grant without an email
    - Tool catalog and initialize tweaks

    Attributes:
        state: Session state shared with the transport.
        transport: HTTP transport to the MCP endpoint.
        grant_tools: Tool names eligible for grant_id injection.

    Example:
        ```python
        proxy = NylasMCPProxy(api_key="nyk_...", region="eu")
        proxy.set_default_grant("grant-123")
        proxy.set_grant_store(JsonGrantStore())
        asyncio.run(proxy.run())
        ```
    """

    def __init__(
        self,
        api_key: str,
        region: str = "us",
        timeout: float = DEFAULT_TIMEOUT,
        grant_tools: Collection[str] = DEFAULT_GRANT_TOOLS,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the proxy.

        Args:
            api_key: Nylas API key.
            region: API region selecting the endpoint (``us`` or ``eu``).
            timeout: Upstream request timeout in seconds.
            grant_tools: Tool names eligible for grant_id injection.
            http_client: Pre-built HTTP client, mainly for tests.
        """
        self.state = SessionState()
        self.grant_tools = frozenset(grant_tools)
        self.transport = UpstreamTransport(
            endpoint=get_mcp_endpoint(region),
            api_key=api_key,
            state=self.state,
            timeout=timeout,
            http_client=http_client,
        )

    @classmethod
    def from_config(
        cls, config: ProxyConfig, http_client: httpx.AsyncClient | None = None
    ) -> "NylasMCPProxy":
        """Create a proxy from resolved configuration."""
        proxy = cls(
            api_key=config.api_key,
            region=config.region,
            timeout=config.timeout,
            grant_tools=config.grant_tools,
            http_client=http_client,
        )
        proxy.set_default_grant(config.default_grant_id)
        return proxy

    @property
    def endpoint(self) -> str:
        return self.transport.endpoint

    def set_default_grant(self, grant_id: str | None) -> None:
        """Set the grant used when a tool call names none."""
        self.state.set_default_grant(grant_id)

    def set_grant_store(self, store: GrantStore | None) -> None:
        """Set the grant store used to answer get_grant locally."""
        self.state.set_grant_store(store)

    async def close(self) -> None:
        """Release the HTTP client."""
        await self.transport.close()

    async def forward(self, line: bytes, request: RPCRequest | None) -> bytes | None:
        """Forward one message upstream and post-process the reply.

        Args:
            line: Raw message as read from stdin.
            request: Parsed form of ``line``, None if it did not parse.

        Returns:
            Reply to relay, or None if there is none.

        Raises:
            ProxyError: If the upstream call fails.
        """
        body = inject_default_grant(line, request, self.state.default_grant_id, self.grant_tools)
        method = request.method if request is not None else None
        logger.debug(f"Forwarding {method or 'unparsed message'} to {self.endpoint}")

        response = await self.transport.send(body)
        if response is None:
            return None
        return rewrite_response(method, response)

    async def handle_line(self, line: bytes) -> bytes | None:
        """Produce the reply for one inbound line.

        Upstream failures become JSON-RPC error replies; they never escape.

        Args:
            line: Raw, non-empty line from stdin.

        Returns:
            Reply to write, or None for fire-and-forget messages.
        """
        request = parse_request(line)
        if request is None:
            logger.debug("Inbound line is not valid JSON-RPC, forwarding as-is")

        if request is not None:
            local = handle_local_tool_call(request, self.state)
            if local is not None:
                return local

        try:
            return await self.forward(line, request)
        except Exception as e:
            message = str(e).strip() or type(e).__name__
            logger.warning(f"Upstream request failed: {message}")
            request_id = request.id if request is not None else None
            return error_response(request_id, INTERNAL_ERROR, message)

    async def run(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: BinaryIO | None = None,
    ) -> None:
        """Run the proxy until end of input.

        Args:
            reader: Source of JSON-RPC lines. Defaults to stdin.
            writer: Sink for replies. Defaults to stdout.

        Raises:
            asyncio.CancelledError: If the task is cancelled; the reason
                propagates to the caller.
        """
        if reader is None:
            reader = await _stdin_reader()
        if writer is None:
            writer = sys.stdout.buffer

        logger.info(f"Nylas MCP proxy started (endpoint: {self.endpoint})")
        try:
            while True:
                line = await _read_line(reader)
                if line is None:
                    logger.warning("Dropped inbound message longer than the line limit")
                    writer.write(error_response(None, INTERNAL_ERROR, LINE_TOO_LONG) + b"\n")
                    writer.flush()
                    continue
                if not line:
                    logger.info("stdin closed, shutting down")
                    return

                line = line.strip()
                if not line:
                    continue

                reply = await self.handle_line(line)
                if reply:
                    writer.write(reply + b"\n")
                    writer.flush()
        finally:
            await self.close()


def main(config: ProxyConfig, grant_store: GrantStore | None = None) -> None:
    """Entry point for running the proxy on stdio."""
    proxy = NylasMCPProxy.from_config(config)
    proxy.set_grant_store(grant_store)
    asyncio.run(proxy.run())
