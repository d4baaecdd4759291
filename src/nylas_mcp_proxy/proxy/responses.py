"""Post-process upstream replies before they reach the client.

Two rewrites exist, keyed on the method of the originating request:

- ``tools/list``: make ``email`` optional on get_grant, since the proxy can
  answer it from the local grant store.
- ``initialize``: tell the assistant which timezone the user is in.

Both fail open. A body that does not have the expected shape is returned
unchanged, byte for byte.
"""

import json
import logging
import os
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any

from nylas_mcp_proxy.proxy.interceptor import GET_GRANT_TOOL
from nylas_mcp_proxy.proxy.messages import INITIALIZE, TOOLS_LIST, dumps

logger = logging.getLogger(__name__)

GET_GRANT_NOTE = " If email is not provided, returns the default authenticated grant."

TIMEZONE_MARKER = "IMPORTANT - Timezone Consistency:"

TIMEZONE_GUIDANCE = """

{marker}
The user's local timezone is: {zone} ({abbrev})
When showing ANY timestamp to the user (emails, events, availability, etc.):
1. Convert Unix timestamps with the epoch_to_datetime tool using timezone "{zone}"
2. Show every time in {abbrev}, never in UTC or the event's own timezone
3. Format times clearly (e.g., "2:00 PM {abbrev}")"""

ZONEINFO_DIR = "zoneinfo/"


def _zone_name_from_system() -> str | None:
    tz = os.environ.get("TZ", "").lstrip(":").strip()
    if tz and not tz.startswith("/"):
        return tz

    localtime = Path(tz or "/etc/localtime")
    try:
        target = str(localtime.resolve())
    except OSError:
        return None
    if ZONEINFO_DIR in target:
        return target.split(ZONEINFO_DIR, 1)[1]
    return None


def local_timezone() -> tuple[str, str]:
    """Detect the host timezone.

    Returns:
        (name, abbreviation). The name is the IANA zone when it can be
        determined and the abbreviation otherwise.
    """
    abbrev = datetime.now().astimezone().tzname() or "UTC"
    return _zone_name_from_system() or abbrev, abbrev


def _rewrite_tools_list_message(message: Any) -> bool:
    if not isinstance(message, dict):
        return False
    result = message.get("result")
    if not isinstance(result, dict):
        return False
    tools = result.get("tools")
    if not isinstance(tools, list):
        return False

    for tool in tools:
        if not isinstance(tool, dict) or tool.get("name") != GET_GRANT_TOOL:
            continue
        schema = tool.get("inputSchema")
        if not isinstance(schema, dict):
            return False

        changed = False
        required = schema.get("required")
        if isinstance(required, list) and "email" in required:
            schema["required"] = [field for field in required if field != "email"]
            changed = True

        description = tool.get("description")
        if isinstance(description, str) and GET_GRANT_NOTE.strip() not in description:
            tool["description"] = description + GET_GRANT_NOTE
            changed = True
        return changed
    return False


def _rewrite_initialize_message(message: Any, zone: tuple[str, str]) -> bool:
    if not isinstance(message, dict):
        return False
    result = message.get("result")
    if not isinstance(result, dict):
        return False

    instructions = result.get("instructions")
    if not isinstance(instructions, str):
        instructions = ""
    if TIMEZONE_MARKER in instructions:
        return False

    name, abbrev = zone
    result["instructions"] = instructions + TIMEZONE_GUIDANCE.format(
        marker=TIMEZONE_MARKER, zone=name, abbrev=abbrev
    )
    return True


def _apply(body: bytes, rewrite: Callable[[Any], bool]) -> bytes:
    try:
        document = json.loads(body)
    except (ValueError, TypeError):
        return body

    if isinstance(document, list):
        # An SSE stream may carry several messages; rewrite each one.
        changed = any([rewrite(message) for message in document])
    else:
        changed = rewrite(document)

    if not changed:
        return body
    try:
        return dumps(document)
    except (TypeError, ValueError) as e:
        logger.warning(f"Could not re-serialise rewritten response: {e}")
        return body


def rewrite_tools_list(body: bytes) -> bytes:
    """Make ``email`` optional on the get_grant tool.

    Args:
        body: Raw ``tools/list`` reply.

    Returns:
        The rewritten reply, or ``body`` unchanged if get_grant is absent,
        already rewritten, or the shape is unexpected.
    """
    return _apply(body, _rewrite_tools_list_message)


def rewrite_initialize(body: bytes, zone: tuple[str, str] | None = None) -> bytes:
    """Append timezone guidance to ``result.instructions``.

    Args:
        body: Raw ``initialize`` reply.
        zone: (name, abbreviation) to announce. Detected when omitted.

    Returns:
        The rewritten reply, or ``body`` unchanged on unexpected shape.
    """
    zone = zone or local_timezone()
    return _apply(body, lambda message: _rewrite_initialize_message(message, zone))


def rewrite_response(method: str | None, body: bytes) -> bytes:
    """Apply the rewrite matching the originating request's method."""
    if method == TOOLS_LIST:
        return rewrite_tools_list(body)
    if method == INITIALIZE:
        return rewrite_initialize(body)
    return body
