# ABOUTME: Shared Click options for metarr CLI commands.
# ABOUTME: Provides reusable decorators for common flags like --db, --id and --background.

from pathlib import Path

import click

from metarr.db.connection import DEFAULT_DB_PATH

db_option = click.option(
    "--db",
    "db_path",
    type=click.Path(path_type=Path),
    default=None,
    help=f"Path to configuration database (default: {DEFAULT_DB_PATH})",
)

ids_option = click.option(
    "--id",
    "id_pairs",
    multiple=True,
    required=True,
    metavar="KIND=VALUE",
    help="External ID of the entity, e.g. tmdb=603 or imdb=tt0133093. Repeatable.",
)

background_option = click.option(
    "--background",
    is_flag=True,
    default=False,
    help="Use the patient background preset (longer timeout, more retries).",
)

ENTITY_TYPES = ("movie", "collection", "series", "season", "episode", "artist", "album", "track")

entity_argument = click.argument("entity_type", type=click.Choice(ENTITY_TYPES))
