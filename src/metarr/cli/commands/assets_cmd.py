# ABOUTME: The `metarr assets` command that pools artwork candidates and shows the best per type.
# ABOUTME: Candidates from every image provider are filtered, scored and deduplicated by type.

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from metarr.cli import runtime
from metarr.cli.commands.metadata_cmd import print_diagnostics
from metarr.cli.options import background_option, db_option, entity_argument, ids_option
from metarr.providers.selector import AssetSelectionConfig, AssetSelector


@click.command("assets")
@entity_argument
@ids_option
@db_option
@click.option(
    "--type",
    "asset_types",
    multiple=True,
    default=("poster", "fanart"),
    show_default=True,
    help="Asset type to select. Repeatable.",
)
@click.option("--count", type=click.IntRange(min=0), default=1, show_default=True)
@click.option("--min-width", type=int, default=None, help="Drop narrower images.")
@click.option("--min-height", type=int, default=None, help="Drop shorter images.")
@click.option(
    "--quality",
    type=click.Choice(["any", "sd", "hd", "4k"]),
    default="any",
    show_default=True,
    help="Lowest acceptable quality tier.",
)
@click.option("--language", default="en", show_default=True, help="Preferred language.")
@click.option(
    "--only-language",
    is_flag=True,
    default=False,
    help="Drop images tagged with any other language.",
)
@background_option
def assets(
    entity_type: str,
    id_pairs: tuple[str, ...],
    db_path: Path | None,
    asset_types: tuple[str, ...],
    count: int,
    min_width: int | None,
    min_height: int | None,
    quality: str,
    language: str,
    only_language: bool,
    background: bool,
) -> None:
    """Show the best artwork of each type for an entity."""
    console = Console()
    external_ids = runtime.parse_pairs(id_pairs, "--id")

    registry = runtime.build_registry()
    conn, store = runtime.open_store(db_path, registry)
    try:
        orchestrator = runtime.build_orchestrator(
            store, registry, "background" if background else "user"
        )
        result = asyncio.run(orchestrator.fetch_assets(entity_type, external_ids, asset_types))
    finally:
        conn.close()

    if not result.candidates:
        console.print("[yellow]No artwork found.[/yellow]")
        print_diagnostics(console, result.diagnostics)
        return

    table = Table()
    table.add_column("Type", style="bold")
    table.add_column("#", justify="right", width=3)
    table.add_column("Provider")
    table.add_column("Size", justify="right")
    table.add_column("Lang", width=5)
    table.add_column("Votes", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("URL", overflow="fold")

    for asset_type in asset_types:
        selector = AssetSelector(
            AssetSelectionConfig(
                asset_type=asset_type,
                max_count=count,
                min_width=min_width,
                min_height=min_height,
                quality_preference=quality,  # type: ignore[arg-type]
                prefer_language=language,
                allow_multilingual=not only_language,
            )
        )
        pool = [c for c in result.candidates if c.asset_type == asset_type]
        best = selector.select_best(pool)
        if not best:
            table.add_row(asset_type, "-", "[dim]none[/dim]", "", "", "", "", "")
            continue
        for rank, candidate in enumerate(best, start=1):
            size = (
                f"{candidate.width}x{candidate.height}"
                if candidate.width and candidate.height
                else "?"
            )
            table.add_row(
                asset_type,
                str(rank),
                candidate.provider_id,
                size,
                candidate.language or "-",
                str(candidate.votes) if candidate.votes is not None else "-",
                f"{selector.score(candidate):.1f}",
                candidate.url,
            )

    console.print(table)
    console.print(f"\n[dim]{len(result.candidates)} candidate(s) considered[/dim]")
    print_diagnostics(console, result.diagnostics)
