# ABOUTME: The `metarr config` command group for viewing and editing provider configuration.
# ABOUTME: Settings are stored in the SQLite database; API keys are masked when shown.

from dataclasses import replace
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from metarr.cli import runtime
from metarr.cli.options import db_option
from metarr.providers.types import ProviderConfig


def _mask(secret: str | None) -> str:
    if not secret:
        return "[dim]unset[/dim]"
    if len(secret) <= 8:
        return "****"
    return f"{secret[:4]}…{secret[-4:]}"


@click.group("config")
def config() -> None:
    """View or change provider settings."""


@config.command("set")
@click.argument("provider_name")
@db_option
@click.option("--api-key", default=None, help="API key or read access token.")
@click.option("--base-url", default=None, help="Override the provider's API base URL.")
@click.option("--priority", type=int, default=None, help="Lower values are queried first.")
@click.option("--language", default=None, help="Preferred language code, e.g. en.")
@click.option("--enable/--disable", "enabled", default=None, help="Enable or disable.")
@click.option(
    "--option",
    "option_pairs",
    multiple=True,
    metavar="KEY=VALUE",
    help="Adapter-specific setting, e.g. personal_api_key=abc. Repeatable.",
)
def set_config(
    provider_name: str,
    db_path: Path | None,
    api_key: str | None,
    base_url: str | None,
    priority: int | None,
    language: str | None,
    enabled: bool | None,
    option_pairs: tuple[str, ...],
) -> None:
    """Create or update the configuration for PROVIDER_NAME."""
    console = Console()
    registry = runtime.build_registry()
    if not registry.is_registered(provider_name):
        known = ", ".join(registry.list_providers())
        console.print(f"[red]Unknown provider '{provider_name}'.[/red] Known: {known}")
        raise SystemExit(1)

    options = runtime.parse_pairs(option_pairs, "--option")
    conn, store = runtime.open_store(db_path, registry)
    try:
        current = store.get_by_name(provider_name)
        if current is None:
            current = ProviderConfig(provider_name=provider_name)
        updated = replace(
            current,
            api_key=api_key if api_key is not None else current.api_key,
            base_url=base_url if base_url is not None else current.base_url,
            priority=priority if priority is not None else current.priority,
            language=language or current.language,
            enabled=enabled if enabled is not None else current.enabled,
            options={**current.options, **options},
        )
        store.save(updated)
    finally:
        conn.close()

    console.print(f"[green]Saved configuration for {provider_name}.[/green]")


@config.command("show")
@db_option
def show_config(db_path: Path | None) -> None:
    """Show the stored configuration of every provider."""
    console = Console()
    registry = runtime.build_registry()
    conn, store = runtime.open_store(db_path, registry)
    try:
        configs = store.get_all()
    finally:
        conn.close()

    table = Table()
    table.add_column("Provider", style="bold")
    table.add_column("Enabled")
    table.add_column("Priority", justify="right")
    table.add_column("Language", width=8)
    table.add_column("API key")
    table.add_column("Base URL")
    table.add_column("Options")

    for cfg in configs:
        key_display = _mask(cfg.api_key)
        if not cfg.api_key:
            envvar = runtime.api_key_envvar(cfg.provider_name)
            key_display += f" [dim](env {envvar})[/dim]"
        table.add_row(
            cfg.provider_name,
            "[green]yes[/green]" if cfg.enabled else "[red]no[/red]",
            str(cfg.priority),
            cfg.language,
            key_display,
            cfg.base_url or "[dim]default[/dim]",
            ", ".join(f"{k}={_mask(str(v))}" for k, v in sorted(cfg.options.items())),
        )

    console.print(table)
