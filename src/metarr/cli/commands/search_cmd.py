# ABOUTME: The `metarr search` command for finding an entity's IDs by title.
# ABOUTME: Searches every enabled provider that supports search and ranks results by confidence.

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from metarr.cli import runtime
from metarr.cli.options import db_option
from metarr.providers.types import SearchRequest


@click.command("search")
@click.argument("query")
@db_option
@click.option("--type", "entity_type", default="movie", show_default=True)
@click.option("--year", type=int, default=None, help="Release year to narrow results.")
@click.option("--limit", type=click.IntRange(min=1), default=10, show_default=True)
def search(
    query: str, db_path: Path | None, entity_type: str, year: int | None, limit: int
) -> None:
    """Search providers for QUERY."""
    console = Console()
    registry = runtime.build_registry()
    conn, store = runtime.open_store(db_path, registry)
    try:
        orchestrator = runtime.build_orchestrator(store, registry)
        request = SearchRequest(query=query, entity_type=entity_type, year=year, limit=limit)
        results = asyncio.run(orchestrator.search_across_providers(request))
    finally:
        conn.close()

    if not results:
        console.print("[yellow]No results found.[/yellow]")
        return

    table = Table()
    table.add_column("Provider", style="dim")
    table.add_column("ID")
    table.add_column("Title", style="bold")
    table.add_column("Year", width=6)
    table.add_column("Match", justify="right")

    for result in results:
        table.add_row(
            result.provider_id,
            result.provider_result_id,
            result.title,
            (result.release_date or "?")[:4],
            f"{result.confidence:.0%}",
        )

    console.print(table)
    console.print(f"\n[dim]{len(results)} result(s)[/dim]")
