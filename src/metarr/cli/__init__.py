# ABOUTME: CLI package for metarr, built on Click.
# ABOUTME: Defines the root command group, configures logging and registers subcommands.

import logging

import click
from rich.logging import RichHandler

from metarr.cli.commands import (
    assets_cmd,
    config_cmd,
    metadata_cmd,
    providers_cmd,
    search_cmd,
    test_cmd,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group()
@click.version_option(package_name="metarr")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """metarr - fetch movie metadata and artwork from several providers at once."""
    _configure_logging(verbose)


cli.add_command(providers_cmd.providers)
cli.add_command(config_cmd.config)
cli.add_command(metadata_cmd.metadata)
cli.add_command(assets_cmd.assets)
cli.add_command(search_cmd.search)
cli.add_command(test_cmd.test)
