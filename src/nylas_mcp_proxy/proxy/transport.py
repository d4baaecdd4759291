"""HTTP transport to the hosted Nylas MCP server.

Every JSON-RPC message is sent as one POST. The server answers with plain
JSON, an SSE stream of JSON-RPC messages, or 202 Accepted for
notifications.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator

import httpx

from nylas_mcp_proxy.config import DEFAULT_TIMEOUT
from nylas_mcp_proxy.proxy.session import SessionState

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"
GRANT_HEADER = "X-Nylas-Grant-Id"

CONNECT_TIMEOUT = 10.0


class ProxyError(Exception):
    """Base class for failures talking to the upstream server."""


class UpstreamError(ProxyError):
    """The upstream server answered with a non-2xx status.

    Attributes:
        status_code: HTTP status returned.
        body: Response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"server returned {status_code}: {body}")


class TransportError(ProxyError):
    """The request could not be completed (network failure or timeout)."""


async def read_sse(lines: AsyncIterator[str]) -> bytes | None:
    """Collect the JSON-RPC messages carried by an SSE body.

    Each ``data:`` line holds one complete JSON-RPC message. Comments,
    ``event:`` and ``id:`` fields are ignored.

    Args:
        lines: Decoded body lines.

    Returns:
        None for no messages, the message itself for one, or a JSON array
        of all messages in arrival order.

    Raises:
        TransportError: If a data line is not valid JSON.
    """
    messages: list[str] = []
    async for line in lines:
        if not line.startswith("data:"):
            continue
        data = line[5:]
        if data.startswith(" "):
            data = data[1:]
        if not data.strip():
            continue
        try:
            json.loads(data)
        except ValueError as e:
            raise TransportError(f"invalid JSON in event stream: {e}") from e
        messages.append(data)

    if not messages:
        return None
    if len(messages) == 1:
        return messages[0].encode("utf-8")
    return ("[" + ",".join(messages) + "]").encode("utf-8")


class UpstreamTransport:
    """POSTs JSON-RPC messages to the MCP endpoint.

    Attributes:
        endpoint: MCP endpoint URL.
        timeout: Overall per-request timeout in seconds.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        state: SessionState,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            endpoint: MCP endpoint URL.
            api_key: Nylas API key, sent as a bearer token.
            state: Session state providing and receiving the session id.
            timeout: Overall per-request timeout in seconds.
            http_client: Pre-built client (tests). Created lazily otherwise.
        """
        self.endpoint = endpoint
        self.timeout = timeout
        self._auth_header = f"Bearer {api_key}"
        self._state = state
        self._http_client = http_client

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        Returns:
            Shared httpx.AsyncClient instance.
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                timeout=httpx.Timeout(self.timeout, connect=CONNECT_TIMEOUT),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _build_headers(self) -> dict[str, str]:
        session_id, default_grant_id, _ = self._state.snapshot()

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            "Authorization": self._auth_header,
        }
        if session_id:
            headers[SESSION_HEADER] = session_id
        if default_grant_id:
            headers[GRANT_HEADER] = default_grant_id
        return headers

    def _capture_session(self, response: httpx.Response) -> None:
        session_id = response.headers.get(SESSION_HEADER)
        if session_id and session_id != self._state.session_id:
            logger.debug("Captured upstream session id")
            self._state.set_session_id(session_id)

    async def _read_body(self, response: httpx.Response) -> bytes | None:
        if response.status_code == httpx.codes.ACCEPTED:
            body = await response.aread()
            return body if body.strip() else None

        if not response.is_success:
            body = await response.aread()
            raise UpstreamError(response.status_code, body.decode("utf-8", errors="replace").strip())

        content_type = response.headers.get("content-type", "").lower()
        if content_type.startswith("text/event-stream"):
            return await read_sse(response.aiter_lines())

        body = await response.aread()
        return body if body.strip() else None

    async def _exchange(self, body: bytes) -> bytes | None:
        client = await self._get_http_client()
        async with client.stream(
            "POST", self.endpoint, content=body, headers=self._build_headers()
        ) as response:
            self._capture_session(response)
            return await self._read_body(response)

    async def send(self, body: bytes) -> bytes | None:
        """Send one JSON-RPC message upstream.

        Args:
            body: Serialised JSON-RPC message.

        Returns:
            Response body to relay, or None when there is nothing to relay
            (202 Accepted, empty body, SSE stream without messages).

        Raises:
            UpstreamError: On a non-2xx status.
            TransportError: On network failure or timeout.
        """
        try:
            return await asyncio.wait_for(self._exchange(body), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TransportError(f"request timed out after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise TransportError(f"sending request: {str(e) or type(e).__name__}") from e
