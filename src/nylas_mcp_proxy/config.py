"""Configuration for the Nylas MCP proxy.

Settings are merged from three sources, later ones winning:

1. YAML config file (default ``~/.config/nylas/config.yaml``)
2. Environment variables
3. Explicit overrides (CLI options)

Environment Variables:
    NYLAS_API_KEY: Nylas API key (required)
    NYLAS_REGION: API region, ``us`` or ``eu`` (default: us)
    NYLAS_GRANT_ID: Default grant ID injected into tool calls
    NYLAS_MCP_TIMEOUT: Upstream request timeout in seconds (default: 90)
    NYLAS_GRANTS_FILE: Path to the local grants.json file
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

# Regional MCP endpoints
NYLAS_MCP_ENDPOINT_US = "https://mcp.us.nylas.com"
NYLAS_MCP_ENDPOINT_EU = "https://mcp.eu.nylas.com"

# Upstream tool executions can be slow (large mailbox searches)
DEFAULT_TIMEOUT = 90.0

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "nylas" / "config.yaml"

# Tools that accept grant_id at the root of their arguments.
# Not listed on purpose:
#   - availability: grant ids live inside the participants array
#   - confirm_send_message, confirm_send_draft: only validate content
#   - epoch_to_datetime, current_time, datetime_to_epoch: take no grant
DEFAULT_GRANT_TOOLS: frozenset[str] = frozenset(
    {
        "get_grant",
        "list_calendars",
        "list_events",
        "create_event",
        "update_event",
        "list_messages",
        "list_threads",
        "get_folder_by_id",
        "create_draft",
        "update_draft",
        "send_draft",
        "send_message",
    }
)


class ConfigError(Exception):
    """Raised when proxy configuration is missing or invalid."""


def get_mcp_endpoint(region: str | None) -> str:
    """Return the MCP endpoint for a region.

    Args:
        region: Region selector, case-insensitive. Anything other than
            ``eu`` selects the US endpoint.

    Returns:
        Endpoint URL.
    """
    if (region or "").strip().lower() == "eu":
        return NYLAS_MCP_ENDPOINT_EU
    return NYLAS_MCP_ENDPOINT_US


class ProxyConfig(BaseModel):
    """Resolved proxy settings.

    Attributes:
        api_key: Nylas API key sent as a bearer token.
        region: API region (``us`` or ``eu``).
        default_grant_id: Grant injected into tool calls that need one.
        timeout: Upstream request timeout in seconds.
        grant_tools: Tool names eligible for grant_id injection.
        grants_file: Override for the local grants.json location.
    """

    api_key: str = Field(..., min_length=1, description="Nylas API key")
    region: str = Field(default="us", description="API region")
    default_grant_id: str | None = Field(default=None, description="Default grant ID")
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0, description="Request timeout (s)")
    grant_tools: frozenset[str] = Field(
        default=DEFAULT_GRANT_TOOLS, description="Tools that receive the default grant"
    )
    grants_file: Path | None = Field(default=None, description="Path to grants.json")

    @field_validator("region", mode="before")
    @classmethod
    def _normalize_region(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or "us"
        return value

    @field_validator("default_grant_id", mode="before")
    @classmethod
    def _blank_grant_is_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def endpoint(self) -> str:
        """MCP endpoint URL for the configured region."""
        return get_mcp_endpoint(self.region)


def _read_config_file(path: Path) -> dict[str, Any]:
    """Read settings from a YAML config file.

    Args:
        path: Path to the YAML file.

    Returns:
        Settings keyed by ProxyConfig field name.

    Raises:
        ConfigError: If the file cannot be parsed.
    """
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    settings: dict[str, Any] = {}
    for key, field in (
        ("api_key", "api_key"),
        ("region", "region"),
        ("default_grant", "default_grant_id"),
        ("grants_file", "grants_file"),
    ):
        if data.get(key) is not None:
            settings[field] = data[key]

    mcp_section = data.get("mcp") or {}
    if isinstance(mcp_section, dict):
        if mcp_section.get("timeout") is not None:
            settings["timeout"] = mcp_section["timeout"]
        if mcp_section.get("grant_tools") is not None:
            settings["grant_tools"] = mcp_section["grant_tools"]
    return settings


def _read_environment() -> dict[str, Any]:
    """Read settings from NYLAS_* environment variables."""
    settings: dict[str, Any] = {}
    for var, field in (
        ("NYLAS_API_KEY", "api_key"),
        ("NYLAS_REGION", "region"),
        ("NYLAS_GRANT_ID", "default_grant_id"),
        ("NYLAS_MCP_TIMEOUT", "timeout"),
        ("NYLAS_GRANTS_FILE", "grants_file"),
    ):
        value = os.environ.get(var)
        if value:
            settings[field] = value
    return settings


def _collect_settings(config_path: Path | None, overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge config file, environment and overrides, later sources winning."""
    settings: dict[str, Any] = {}

    if config_path is not None:
        if not config_path.exists():
            raise ConfigError(f"config file not found: {config_path}")
        settings.update(_read_config_file(config_path))
    elif DEFAULT_CONFIG_PATH.exists():
        logger.debug(f"Loading config from {DEFAULT_CONFIG_PATH}")
        settings.update(_read_config_file(DEFAULT_CONFIG_PATH))

    settings.update(_read_environment())
    settings.update({k: v for k, v in overrides.items() if v is not None})
    return settings


def resolve_grants_file(
    config_path: Path | None = None, grants_file: Path | None = None
) -> Path | None:
    """Resolve the grants file the same way load_config does.

    Unlike load_config, no API key is needed, so commands that only read
    local grants work before a key is configured.

    Returns:
        Configured grants file, or None for the default location.

    Raises:
        ConfigError: If the config file cannot be read.
    """
    value = _collect_settings(config_path, {"grants_file": grants_file}).get("grants_file")
    return Path(value) if value else None


def load_config(config_path: Path | None = None, **overrides: Any) -> ProxyConfig:
    """Load proxy configuration.

    Args:
        config_path: YAML config file. When omitted, the default location is
            used if it exists. An explicit path must exist.
        **overrides: Field values that take precedence over everything else.
            ``None`` values are ignored.

    Returns:
        Validated ProxyConfig.

    Raises:
        ConfigError: If the API key is missing or any value is invalid.
    """
    settings = _collect_settings(config_path, overrides)

    if not settings.get("api_key"):
        raise ConfigError(
            "Nylas API key required. Set NYLAS_API_KEY or pass --api-key."
        )

    try:
        return ProxyConfig.model_validate(settings)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e
