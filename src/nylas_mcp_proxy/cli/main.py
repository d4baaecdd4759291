"""Command-line interface for nylas-mcp-proxy."""

import logging
import sys
from pathlib import Path

import click

from nylas_mcp_proxy.__version__ import __version__
from nylas_mcp_proxy.config import ConfigError, ProxyConfig, load_config, resolve_grants_file

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _open_grant_store(config: ProxyConfig):
    from nylas_mcp_proxy.grants import JsonGrantStore

    return JsonGrantStore(grants_path=config.grants_file)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Log level (logs go to stderr)",
)
@click.option("-v", "--verbose", is_flag=True, help="Shortcut for --log-level=DEBUG")
def main(log_level: str, verbose: bool) -> None:
    """Nylas MCP Proxy - Connect AI assistants to the Nylas MCP server.

    Runs as a local stdio MCP server and forwards requests to the hosted
    Nylas MCP endpoint, adding:
    - API key authentication
    - Session affinity
    - Default grant selection for email/calendar tools
    """
    # stdout carries JSON-RPC, so logs always go to stderr
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if verbose else getattr(logging, log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.option("--api-key", envvar="NYLAS_API_KEY", help="Nylas API key")
@click.option("--region", type=click.Choice(["us", "eu"], case_sensitive=False), help="API region")
@click.option("--grant", "grant_id", help="Default grant ID for tool calls")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML config file (default: ~/.config/nylas/config.yaml)",
)
@click.option(
    "--grants-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Local grants.json (default: ~/.config/nylas/grants.json)",
)
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Upstream timeout in seconds")
@click.option(
    "--grant-tool",
    "extra_grant_tools",
    multiple=True,
    help="Additional tool that receives the default grant_id (repeatable)",
)
def serve(
    api_key: str | None,
    region: str | None,
    grant_id: str | None,
    config_path: Path | None,
    grants_file: Path | None,
    timeout: float | None,
    extra_grant_tools: tuple[str, ...],
) -> None:
    """Start the MCP proxy on stdio.

    This command is typically invoked by an MCP client (Claude Desktop,
    Cursor, ...) rather than by hand. The default grant is taken from
    --grant, then the config file / NYLAS_GRANT_ID, then the default grant
    of the local grant store.
    """
    from nylas_mcp_proxy.proxy import main as proxy_main

    try:
        config = load_config(
            config_path,
            api_key=api_key,
            region=region,
            default_grant_id=grant_id,
            grants_file=grants_file,
            timeout=timeout,
        )
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    store = _open_grant_store(config)
    updates: dict = {}
    if config.default_grant_id is None:
        updates["default_grant_id"] = store.get_default_grant()
    if extra_grant_tools:
        updates["grant_tools"] = config.grant_tools | frozenset(extra_grant_tools)
    if updates:
        config = config.model_copy(update=updates)

    click.echo(f"Starting Nylas MCP proxy ({config.endpoint})...", err=True)
    if config.default_grant_id:
        click.echo(f"Default grant: {config.default_grant_id}", err=True)

    try:
        proxy_main(config, grant_store=store)
    except KeyboardInterrupt:
        click.echo("\nProxy stopped.", err=True)


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML config file (default: ~/.config/nylas/config.yaml)",
)
@click.option(
    "--grants-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Local grants.json (default: ~/.config/nylas/grants.json)",
)
def grants(config_path: Path | None, grants_file: Path | None) -> None:
    """List locally stored grants."""
    from nylas_mcp_proxy.grants import JsonGrantStore

    try:
        grants_path = resolve_grants_file(config_path, grants_file)
    except ConfigError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    store = JsonGrantStore(grants_path=grants_path)
    items = store.list_grants()
    if not items:
        click.echo("No grants found. Run 'nylas auth login' first.")
        return

    default_id = store.get_default_grant()
    for grant in items:
        marker = "*" if grant.id == default_id else " "
        click.echo(f"{marker} {grant.id}  {grant.email}  ({grant.provider or 'unknown'})")


@main.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML config file (default: ~/.config/nylas/config.yaml)",
)
def doctor(config_path: Path | None) -> None:
    """Check configuration and local grants.

    Verifies:
    1. API key configured
    2. Endpoint for the configured region
    3. Default grant and grant store contents
    """
    click.echo("Nylas MCP Proxy Status:")
    click.echo("")

    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"  ❌ {e}")
        sys.exit(1)

    click.echo("Configuration:")
    click.echo("  ✓ API key configured")
    click.echo(f"  Region: {config.region}")
    click.echo(f"  Endpoint: {config.endpoint}")
    click.echo(f"  Timeout: {config.timeout:g}s")
    click.echo("")

    store = _open_grant_store(config)
    items = store.list_grants()
    default_id = config.default_grant_id or store.get_default_grant()

    click.echo("Grants:")
    click.echo(f"  Grant file: {store.grants_path}")
    click.echo(f"  Stored grants: {len(items)}")
    if default_id:
        click.echo(f"  Default grant: {default_id}")
    else:
        click.echo("  ⚠️  No default grant (tool calls must name a grant_id)")
    click.echo("")
    click.echo("✓ Ready to use!")


if __name__ == "__main__":
    main()
