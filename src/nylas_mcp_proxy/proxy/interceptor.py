"""Answer ``get_grant`` from the local grant store.

The upstream get_grant tool requires an email address. AI clients usually
just want "the account I'm logged in as", which only the local store knows,
so calls without an email are answered here. Calls with an email still go
upstream because only the Nylas API can resolve arbitrary addresses.
"""

import logging

from nylas_mcp_proxy.grants.models import Grant, GrantStore
from nylas_mcp_proxy.proxy.messages import RPCRequest, tool_error_response, tool_result_response
from nylas_mcp_proxy.proxy.session import SessionState

logger = logging.getLogger(__name__)

GET_GRANT_TOOL = "get_grant"

NO_GRANTS_MESSAGE = "No authenticated grants found. Please run 'nylas auth login' first."


def _has_explicit_target(request: RPCRequest) -> bool:
    arguments = request.arguments
    for key in ("email", "identifier"):
        value = arguments.get(key)
        if isinstance(value, str) and value:
            return True
    return False


def _resolve_grant(store: GrantStore, default_grant_id: str | None) -> Grant | None:
    if default_grant_id:
        try:
            return store.get_grant(default_grant_id)
        except Exception as e:
            logger.warning(f"Default grant {default_grant_id} unavailable, falling back: {e}")

    try:
        grants = store.list_grants()
    except Exception as e:
        logger.warning(f"Failed to list grants: {e}")
        return None
    return grants[0] if grants else None


def handle_local_tool_call(request: RPCRequest, state: SessionState) -> bytes | None:
    """Answer a request locally when possible.

    Args:
        request: Parsed inbound request.
        state: Proxy session state.

    Returns:
        Serialised reply if the request was handled locally, otherwise None.
    """
    _, default_grant_id, store = state.snapshot()

    if store is None:
        return None
    if not request.is_tool_call or request.tool_name != GET_GRANT_TOOL:
        return None
    if _has_explicit_target(request):
        return None

    grant = _resolve_grant(store, default_grant_id)
    if grant is None:
        logger.debug("get_grant answered locally: no grants")
        return tool_error_response(request.id, NO_GRANTS_MESSAGE)

    logger.debug(f"get_grant answered locally with grant {grant.id}")
    return tool_result_response(request.id, grant.to_tool_payload())
