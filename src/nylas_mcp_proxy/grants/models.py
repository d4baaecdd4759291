"""Data models for locally stored Nylas grants.

A grant is an authenticated mailbox/calendar connection. The proxy only
ever reads grants; creating and deleting them is the job of the Nylas CLI
login flow.
"""

from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field


class GrantNotFoundError(LookupError):
    """Raised when a grant lookup has no match."""


class Grant(BaseModel):
    """A single authenticated grant.

    Attributes:
        id: Opaque Nylas grant identifier.
        email: Email address of the connected account.
        provider: Provider name (google, microsoft, imap, ...).
    """

    id: str = Field(..., min_length=1, description="Nylas grant ID")
    email: str = Field(default="", description="Account email address")
    provider: str = Field(default="", description="Provider name")

    def to_tool_payload(self) -> dict[str, str]:
        """Return the shape the get_grant tool reports."""
        return {"grant_id": self.id, "email": self.email, "provider": self.provider}


@runtime_checkable
class GrantStore(Protocol):
    """Read-only grant store interface consumed by the proxy."""

    def get_grant(self, grant_id: str) -> Grant:
        """Return the grant with the given ID or raise GrantNotFoundError."""
        ...

    def get_grant_by_email(self, email: str) -> Grant:
        """Return the grant for an email or raise GrantNotFoundError."""
        ...

    def list_grants(self) -> list[Grant]:
        """Return all grants in store order."""
        ...

    def get_default_grant(self) -> str | None:
        """Return the default grant ID, if one is set."""
        ...
