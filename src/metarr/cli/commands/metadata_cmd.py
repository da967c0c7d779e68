# ABOUTME: The `metarr metadata` command that fetches and merges metadata for one entity.
# ABOUTME: Prints the merged fields followed by which providers answered, failed or were skipped.

import asyncio
import json
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from metarr.cli import runtime
from metarr.cli.options import background_option, db_option, entity_argument, ids_option
from metarr.providers.errors import AllProvidersFailedError
from metarr.providers.orchestrator import FetchDiagnostics, MetadataOptions

# Long values are cut to keep the table readable.
_MAX_VALUE_WIDTH = 120


def _format_value(value: Any) -> str:
    if isinstance(value, list | tuple):
        if value and all(isinstance(v, str) for v in value):
            text = ", ".join(value)
        else:
            text = json.dumps(value, default=str)
    elif isinstance(value, dict):
        text = json.dumps(value, default=str)
    else:
        text = str(value)
    if len(text) > _MAX_VALUE_WIDTH:
        text = text[: _MAX_VALUE_WIDTH - 3] + "..."
    return text


def print_diagnostics(console: Console, diagnostics: FetchDiagnostics) -> None:
    for name in diagnostics.succeeded:
        console.print(f"  [green]ok[/green]      {name}")
    for name, error in diagnostics.failed.items():
        label = "timeout" if name in diagnostics.timed_out else "failed"
        console.print(f"  [red]{label:<7}[/red] {name}: {error}")
    for name, reason in diagnostics.skipped.items():
        console.print(f"  [yellow]skipped[/yellow] {name}: {reason}")


@click.command("metadata")
@entity_argument
@ids_option
@db_option
@click.option("--field", "fields", multiple=True, help="Only request these fields. Repeatable.")
@click.option(
    "--strategy",
    type=click.Choice(["aggregate_all", "preferred_first", "field_mapping"]),
    default="aggregate_all",
    show_default=True,
    help="How to merge answers from several providers.",
)
@click.option("--prefer", "preferred", default=None, help="Provider for preferred_first.")
@click.option(
    "--map",
    "map_pairs",
    multiple=True,
    metavar="FIELD=PROVIDER",
    help="Field assignment for field_mapping. Repeatable.",
)
@click.option("--language", default=None, help="Language for provider requests.")
@background_option
def metadata(
    entity_type: str,
    id_pairs: tuple[str, ...],
    db_path: Path | None,
    fields: tuple[str, ...],
    strategy: str,
    preferred: str | None,
    map_pairs: tuple[str, ...],
    language: str | None,
    background: bool,
) -> None:
    """Fetch merged metadata for an entity identified by external IDs."""
    console = Console()
    external_ids = runtime.parse_pairs(id_pairs, "--id")
    mapping = runtime.parse_pairs(map_pairs, "--map")
    options = MetadataOptions(
        strategy=strategy,  # type: ignore[arg-type]
        fields=fields or None,
        language=language,
        preferred_provider=preferred,
        field_mapping=mapping,
    )

    registry = runtime.build_registry()
    conn, store = runtime.open_store(db_path, registry)
    try:
        orchestrator = runtime.build_orchestrator(
            store, registry, "background" if background else "user"
        )
        result = asyncio.run(
            orchestrator.fetch_metadata_detailed(entity_type, external_ids, options)
        )
    except AllProvidersFailedError as exc:
        console.print(f"[red]{exc}[/red]")
        for name, error in exc.failures.items():
            console.print(f"  [red]failed[/red]  {name}: {error}")
        raise SystemExit(1) from exc
    finally:
        conn.close()

    response = result.response
    table = Table(title=f"{entity_type} {', '.join(f'{k}={v}' for k, v in external_ids.items())}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name, value in response.fields.items():
        table.add_row(name, _format_value(value))

    console.print(table)
    console.print(
        f"[dim]source={response.provider_id} confidence={response.confidence:.2f} "
        f"completeness={response.completeness:.2f}[/dim]"
    )
    if response.external_ids:
        ids = ", ".join(f"{k}={v}" for k, v in sorted(response.external_ids.items()))
        console.print(f"[dim]external ids: {ids}[/dim]")
    console.print("\nProviders:")
    print_diagnostics(console, result.diagnostics)
