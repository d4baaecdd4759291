"""Inject the default grant into outgoing tool calls."""

import json
import logging
from collections.abc import Collection

from nylas_mcp_proxy.config import DEFAULT_GRANT_TOOLS
from nylas_mcp_proxy.proxy.messages import RPCRequest, dumps

logger = logging.getLogger(__name__)

# Argument keys that already pick an account; never overridden
GRANT_ARGUMENT_KEYS = ("grant_id", "identifier")


def inject_default_grant(
    line: bytes,
    request: RPCRequest | None,
    default_grant_id: str | None,
    grant_tools: Collection[str] = DEFAULT_GRANT_TOOLS,
) -> bytes:
    """Add ``arguments.grant_id`` to a tool call that needs one.

    Args:
        line: Raw request as read from stdin.
        request: Parsed form of ``line`` (None if it did not parse).
        default_grant_id: Grant to inject.
        grant_tools: Tool names that accept a root-level grant_id.

    Returns:
        The rewritten request, or ``line`` unchanged when no injection
        applies or re-serialisation fails.
    """
    if not default_grant_id or request is None:
        return line
    if not request.is_tool_call or request.tool_name not in grant_tools:
        return line
    if any(key in request.arguments for key in GRANT_ARGUMENT_KEYS):
        return line

    try:
        # Work on the raw document so fields the model doesn't know survive
        message = json.loads(line)
        params = message["params"]
        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        elif not isinstance(arguments, dict):
            logger.debug(f"{request.tool_name} arguments are not an object, forwarding as-is")
            return line
        params["arguments"] = {**arguments, "grant_id": default_grant_id}
        rewritten = dumps(message)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"Could not inject grant into {request.tool_name}, forwarding as-is: {e}")
        return line

    logger.debug(f"Injected default grant into {request.tool_name}")
    return rewritten
