# ABOUTME: The `metarr providers` command listing registered providers and their capabilities.
# ABOUTME: Joins the registry's capability summary with each provider's stored configuration.

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from metarr.cli import runtime
from metarr.cli.options import db_option


@click.command("providers")
@db_option
def providers(db_path: Path | None) -> None:
    """List registered providers, what they offer and whether they are enabled."""
    console = Console()
    registry = runtime.build_registry()
    conn, store = runtime.open_store(db_path, registry)
    try:
        table = Table()
        table.add_column("Provider", style="bold")
        table.add_column("Category")
        table.add_column("Entities")
        table.add_column("Assets")
        table.add_column("Lookup IDs")
        table.add_column("Rate", justify="right")
        table.add_column("Priority", justify="right")
        table.add_column("Enabled")

        for row in registry.get_capability_summary():
            config = store.get_by_name(row["id"])
            enabled = config is not None and config.enabled
            table.add_row(
                f"{row['name']} [dim]({row['id']})[/dim]",
                row["category"],
                ", ".join(row["entity_types"]),
                ", ".join(row["asset_types"]) or "[dim]none[/dim]",
                ", ".join(row["lookup_ids"]),
                f"{row['requests_per_second']:g}/s",
                str(config.priority) if config else "-",
                "[green]yes[/green]" if enabled else "[red]no[/red]",
            )

        console.print(table)
    finally:
        conn.close()
