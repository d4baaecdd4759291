"""Shared pytest fixtures for nylas-mcp-proxy tests.

This module provides reusable fixtures for grant storage, a fake
upstream MCP server built on httpx.MockTransport, and proxy instances
wired to it.
"""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from nylas_mcp_proxy.grants.models import Grant, GrantNotFoundError

# =============================================================================
# Grant Fixtures
# =============================================================================


@pytest.fixture
def work_grant() -> Grant:
    """A Google work account grant."""
    return Grant(id="a1", email="u@x.com", provider="google")


@pytest.fixture
def personal_grant() -> Grant:
    """A Microsoft personal account grant."""
    return Grant(id="b2", email="me@outlook.com", provider="microsoft")


class FakeGrantStore:
    """In-memory GrantStore for tests."""

    def __init__(self, grants: list[Grant] | None = None, default: str | None = None) -> None:
        self.grants = list(grants or [])
        self.default = default
        self.calls: list[str] = []

    def get_grant(self, grant_id: str) -> Grant:
        self.calls.append(f"get_grant:{grant_id}")
        for grant in self.grants:
            if grant.id == grant_id:
                return grant
        raise GrantNotFoundError(grant_id)

    def get_grant_by_email(self, email: str) -> Grant:
        self.calls.append(f"get_grant_by_email:{email}")
        for grant in self.grants:
            if grant.email == email:
                return grant
        raise GrantNotFoundError(email)

    def list_grants(self) -> list[Grant]:
        self.calls.append("list_grants")
        return list(self.grants)

    def get_default_grant(self) -> str | None:
        return self.default


@pytest.fixture
def fake_store_factory() -> Callable[..., FakeGrantStore]:
    """Build in-memory grant stores."""
    return FakeGrantStore


# =============================================================================
# Grant File Fixtures
# =============================================================================


@pytest.fixture
def grants_path(tmp_path: Path) -> Path:
    """Path for a temporary grants.json file."""
    return tmp_path / "nylas" / "grants.json"


@pytest.fixture
def write_grants(grants_path: Path) -> Callable[[Any], Path]:
    """Write a grants document (or raw text) to grants_path."""

    def _write(document: Any) -> Path:
        grants_path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(document, str):
            grants_path.write_text(document)
        else:
            grants_path.write_text(json.dumps(document))
        return grants_path

    return _write


# =============================================================================
# Fake Upstream MCP Server
# =============================================================================


class FakeUpstream:
    """Scripted upstream MCP server recording every request it receives."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responses: list[httpx.Response | Exception] = []

    def queue(self, response: httpx.Response | Exception) -> None:
        self.responses.append(response)

    def queue_json(self, payload: Any, status_code: int = 200, headers: dict | None = None) -> None:
        self.queue(httpx.Response(status_code, json=payload, headers=headers))

    def queue_sse(self, *messages: Any, headers: dict | None = None) -> None:
        body = "".join(f"event: message\ndata: {json.dumps(m)}\n\n" for m in messages)
        all_headers = {"content-type": "text/event-stream"}
        all_headers.update(headers or {})
        self.queue(httpx.Response(200, content=body.encode(), headers=all_headers))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.responses:
            return httpx.Response(202)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def sent_json(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture
def upstream() -> FakeUpstream:
    """A fake upstream with no scripted responses (answers 202)."""
    return FakeUpstream()


@pytest.fixture
def http_client(upstream: FakeUpstream) -> httpx.AsyncClient:
    """An httpx client routed to the fake upstream."""
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))


@pytest.fixture
def proxy(http_client: httpx.AsyncClient):
    """A NylasMCPProxy talking to the fake upstream."""
    from nylas_mcp_proxy.proxy.server import NylasMCPProxy

    return NylasMCPProxy(api_key="test-api-key", http_client=http_client)


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove NYLAS_* variables and point the default config at tmp_path."""
    for var in (
        "NYLAS_API_KEY",
        "NYLAS_REGION",
        "NYLAS_GRANT_ID",
        "NYLAS_MCP_TIMEOUT",
        "NYLAS_GRANTS_FILE",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(
        "nylas_mcp_proxy.config.DEFAULT_CONFIG_PATH", tmp_path / "missing-config.yaml"
    )
