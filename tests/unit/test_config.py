"""Unit tests for configuration loading."""

from pathlib import Path

import pytest

from nylas_mcp_proxy.config import (
    DEFAULT_GRANT_TOOLS,
    DEFAULT_TIMEOUT,
    NYLAS_MCP_ENDPOINT_EU,
    NYLAS_MCP_ENDPOINT_US,
    ConfigError,
    ProxyConfig,
    get_mcp_endpoint,
    load_config,
    resolve_grants_file,
)


@pytest.mark.unit
class TestGetMCPEndpoint:
    """Tests for get_mcp_endpoint()."""

    @pytest.mark.parametrize(
        ("region", "expected"),
        [
            ("us", NYLAS_MCP_ENDPOINT_US),
            ("eu", NYLAS_MCP_ENDPOINT_EU),
            ("EU", NYLAS_MCP_ENDPOINT_EU),
            ("", NYLAS_MCP_ENDPOINT_US),
            (None, NYLAS_MCP_ENDPOINT_US),
            ("apac", NYLAS_MCP_ENDPOINT_US),
        ],
    )
    def test_should_select_endpoint(self, region, expected) -> None:
        """Verify region selection with the US fallback."""
        assert get_mcp_endpoint(region) == expected


@pytest.mark.unit
@pytest.mark.usefixtures("clean_env")
class TestLoadConfig:
    """Tests for load_config()."""

    def test_should_require_api_key(self) -> None:
        """Verify a missing API key is a configuration error."""
        with pytest.raises(ConfigError, match="API key required"):
            load_config()

    def test_should_apply_defaults(self) -> None:
        """Verify defaults when only the API key is given."""
        config = load_config(api_key="key")

        assert config.region == "us"
        assert config.endpoint == NYLAS_MCP_ENDPOINT_US
        assert config.default_grant_id is None
        assert config.timeout == DEFAULT_TIMEOUT
        assert config.grant_tools == DEFAULT_GRANT_TOOLS

    def test_should_read_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify NYLAS_* variables are honoured."""
        monkeypatch.setenv("NYLAS_API_KEY", "env-key")
        monkeypatch.setenv("NYLAS_REGION", "EU")
        monkeypatch.setenv("NYLAS_GRANT_ID", "g-env")
        monkeypatch.setenv("NYLAS_MCP_TIMEOUT", "30")

        config = load_config()

        assert config.api_key == "env-key"
        assert config.endpoint == NYLAS_MCP_ENDPOINT_EU
        assert config.default_grant_id == "g-env"
        assert config.timeout == 30.0

    def test_should_read_yaml_file(self, tmp_path: Path) -> None:
        """Verify the YAML layout maps onto config fields."""
        path = tmp_path / "config.yaml"
        path.write_text(
            "api_key: file-key\n"
            "region: eu\n"
            "default_grant: g-file\n"
            "mcp:\n"
            "  timeout: 45\n"
            "  grant_tools: [list_events, list_contacts]\n"
        )

        config = load_config(path)

        assert config.api_key == "file-key"
        assert config.region == "eu"
        assert config.default_grant_id == "g-file"
        assert config.timeout == 45.0
        assert config.grant_tools == frozenset({"list_events", "list_contacts"})

    def test_should_prefer_overrides_over_env_and_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Verify precedence: overrides > environment > file."""
        path = tmp_path / "config.yaml"
        path.write_text("api_key: file-key\nregion: eu\ndefault_grant: g-file\n")
        monkeypatch.setenv("NYLAS_GRANT_ID", "g-env")

        config = load_config(path, api_key="cli-key", region=None)

        assert config.api_key == "cli-key"
        assert config.region == "eu"
        assert config.default_grant_id == "g-env"

    def test_should_reject_missing_explicit_file(self, tmp_path: Path) -> None:
        """Verify an explicit config path must exist."""
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yaml", api_key="key")

    def test_should_reject_invalid_yaml(self, tmp_path: Path) -> None:
        """Verify YAML syntax errors become ConfigError."""
        path = tmp_path / "config.yaml"
        path.write_text("api_key: [unclosed\n")

        with pytest.raises(ConfigError, match="failed to read"):
            load_config(path)

    def test_should_reject_invalid_timeout(self) -> None:
        """Verify a non-positive timeout is rejected."""
        with pytest.raises(ConfigError, match="invalid configuration"):
            load_config(api_key="key", timeout=0)


@pytest.mark.unit
class TestProxyConfig:
    """Tests for ProxyConfig validation."""

    def test_should_treat_blank_grant_as_none(self) -> None:
        """Verify an empty default grant is unset."""
        assert ProxyConfig(api_key="k", default_grant_id="  ").default_grant_id is None

    def test_should_normalize_region(self) -> None:
        """Verify region is lower-cased and stripped."""
        assert ProxyConfig(api_key="k", region=" EU ").region == "eu"


@pytest.mark.unit
@pytest.mark.usefixtures("clean_env")
class TestResolveGrantsFile:
    """Tests for resolve_grants_file()."""

    def test_should_default_to_none(self) -> None:
        """Verify no configuration means the store's default location."""
        assert resolve_grants_file() is None

    def test_should_not_require_api_key(self, tmp_path: Path) -> None:
        """Verify the grants file resolves from YAML without an API key."""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("grants_file: /data/grants.json\n")

        assert resolve_grants_file(config_file) == Path("/data/grants.json")

    def test_should_read_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify NYLAS_GRANTS_FILE is honoured."""
        monkeypatch.setenv("NYLAS_GRANTS_FILE", "/env/grants.json")

        assert resolve_grants_file() == Path("/env/grants.json")

    def test_should_prefer_explicit_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Verify an explicit path beats the environment."""
        monkeypatch.setenv("NYLAS_GRANTS_FILE", "/env/grants.json")

        assert resolve_grants_file(grants_file=Path("/cli/grants.json")) == Path("/cli/grants.json")
