"""JSON-RPC message helpers for the stdio side of the proxy.

Only the subset of the envelope the proxy acts on is modelled. The raw
line stays the source of truth for forwarding; the model is a read-only
view used for routing decisions.
"""

import json
from typing import Any

from mcp.types import CallToolResult, TextContent
from pydantic import BaseModel, Field, ValidationError, field_validator

JSONRPC_VERSION = "2.0"

TOOLS_CALL = "tools/call"
TOOLS_LIST = "tools/list"
INITIALIZE = "initialize"


class ToolCallParams(BaseModel):
    """``params`` of a request, as far as tool calls are concerned."""

    name: str = ""
    arguments: dict[str, Any] | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name_must_be_string(cls, value: Any) -> Any:
        return value if isinstance(value, str) else ""

    @field_validator("arguments", mode="before")
    @classmethod
    def _arguments_must_be_object(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None


class RPCRequest(BaseModel):
    """A decoded JSON-RPC request or notification.

    Attributes:
        jsonrpc: Protocol version string as sent.
        id: Request id, echoed verbatim in the reply (None for notifications).
        method: Method name.
        params: Tool call parameters (empty for non tool calls).
    """

    jsonrpc: str = ""
    id: Any = None
    method: str = ""
    params: ToolCallParams = Field(default_factory=ToolCallParams)

    @field_validator("jsonrpc", "method", mode="before")
    @classmethod
    def _must_be_string(cls, value: Any) -> Any:
        return value if isinstance(value, str) else ""

    @field_validator("params", mode="before")
    @classmethod
    def _params_must_be_object(cls, value: Any) -> Any:
        # Positional params are legal JSON-RPC but never a tool call
        return value if isinstance(value, dict) else {}

    @property
    def is_tool_call(self) -> bool:
        return self.method == TOOLS_CALL

    @property
    def tool_name(self) -> str:
        return self.params.name

    @property
    def arguments(self) -> dict[str, Any]:
        return self.params.arguments or {}


def parse_request(line: bytes | str) -> RPCRequest | None:
    """Decode a single JSON-RPC request line.

    Args:
        line: Raw line read from stdin.

    Returns:
        The decoded request, or None when the line is not a JSON object.
        Callers still forward the raw line in that case.
    """
    try:
        data = json.loads(line)
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        return RPCRequest.model_validate(data)
    except ValidationError:
        return None


def dumps(message: Any) -> bytes:
    """Serialise a message compactly for the wire."""
    return json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def success_response(request_id: Any, result: Any) -> bytes:
    """Build a JSON-RPC success reply."""
    return dumps({"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result})


def error_response(request_id: Any, code: int, message: str) -> bytes:
    """Build a JSON-RPC error reply."""
    return dumps(
        {
            "jsonrpc": JSONRPC_VERSION,
            "id": request_id,
            "error": {"code": code, "message": message},
        }
    )


def _tool_result(text: str, is_error: bool) -> dict[str, Any]:
    result = CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)
    return result.model_dump(mode="json", by_alias=True, exclude_none=True)


def tool_result_response(request_id: Any, payload: dict[str, Any]) -> bytes:
    """Build a successful tool call reply carrying ``payload`` as JSON text."""
    text = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return success_response(request_id, _tool_result(text, is_error=False))


def tool_error_response(request_id: Any, message: str) -> bytes:
    """Build a failed tool call reply.

    The failure is reported inside a successful JSON-RPC envelope with
    ``isError`` set, which is how MCP tools report application errors.
    """
    return success_response(request_id, _tool_result(message, is_error=True))
