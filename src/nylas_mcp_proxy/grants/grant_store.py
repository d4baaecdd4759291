"""JSON file grant store for the Nylas MCP proxy.

Grants are written by the Nylas CLI login flow; this module only reads
them so the proxy can answer ``get_grant`` locally and pick a default
grant at startup.

Storage Location: ~/.config/nylas/grants.json

File format:
    {
        "default_grant": "<grant id>",
        "grants": [
            {"id": "<grant id>", "email": "user@example.com", "provider": "google"}
        ]
    }
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from nylas_mcp_proxy.grants.models import Grant, GrantNotFoundError

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "nylas"
GRANTS_FILE = CONFIG_DIR / "grants.json"


def get_grants_path() -> Path:
    """Get the default grant storage path.

    Returns:
        Path to grants.json in ~/.config/nylas/
    """
    return GRANTS_FILE


class JsonGrantStore:
    """Read-only view over a grants.json file.

    The file is re-read on every call so that a login performed in another
    terminal is picked up without restarting the proxy.

    Attributes:
        grants_path: Path to the grants.json file.

    Example:
        ```python
        store = JsonGrantStore()

        for grant in store.list_grants():
            print(grant.email, grant.provider)

        default_id = store.get_default_grant()
        ```
    """

    def __init__(self, grants_path: Path | None = None) -> None:
        """Initialize grant store.

        Args:
            grants_path: Custom path for grants.json.
                If not provided, uses ~/.config/nylas/grants.json.
        """
        self.grants_path = grants_path or get_grants_path()

    def _load(self) -> dict[str, Any]:
        """Load the raw grants document.

        Returns:
            Parsed document, or an empty dict when missing or unreadable.
        """
        if not self.grants_path.exists():
            return {}

        try:
            with open(self.grants_path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read grant store {self.grants_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring grant store {self.grants_path}: not a JSON object")
            return {}
        return data

    def list_grants(self) -> list[Grant]:
        """List all stored grants.

        Returns:
            Grants in file order. Malformed entries are skipped.
        """
        entries = self._load().get("grants")
        if not isinstance(entries, list):
            return []

        grants: list[Grant] = []
        for entry in entries:
            try:
                grants.append(Grant.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping invalid grant entry: {e.error_count()} error(s)")
        return grants

    def get_grant(self, grant_id: str) -> Grant:
        """Retrieve a grant by ID.

        Args:
            grant_id: Nylas grant identifier.

        Returns:
            The matching grant.

        Raises:
            GrantNotFoundError: If no grant has that ID.
        """
        for grant in self.list_grants():
            if grant.id == grant_id:
                return grant
        raise GrantNotFoundError(f"grant not found: {grant_id}")

    def get_grant_by_email(self, email: str) -> Grant:
        """Retrieve a grant by email address (case-insensitive).

        Raises:
            GrantNotFoundError: If no grant has that email.
        """
        wanted = email.strip().lower()
        for grant in self.list_grants():
            if grant.email.lower() == wanted:
                return grant
        raise GrantNotFoundError(f"grant not found for email: {email}")

    def get_default_grant(self) -> str | None:
        """Get the default grant ID.

        Returns:
            Default grant ID, or None if unset.
        """
        default = self._load().get("default_grant")
        if isinstance(default, str) and default:
            return default
        return None
