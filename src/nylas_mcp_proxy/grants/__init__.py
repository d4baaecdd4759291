"""Local grant storage for the Nylas MCP proxy.

Quick Start:
    ```python
    from nylas_mcp_proxy.grants import JsonGrantStore

    store = JsonGrantStore()
    grants = store.list_grants()
    ```
"""

from nylas_mcp_proxy.grants.grant_store import JsonGrantStore
from nylas_mcp_proxy.grants.models import Grant, GrantNotFoundError, GrantStore

__all__ = [
    "Grant",
    "GrantNotFoundError",
    "GrantStore",
    "JsonGrantStore",
]
