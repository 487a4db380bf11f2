#!/usr/bin/env python3
"""Command line entry point for cluster-catalog."""
import json
import pathlib
import sys
from typing import Optional

import typer
from typing_extensions import Annotated

from cluster_catalog.cli.console import console, print_error
from cluster_catalog.clusters.config import describe_config, load_catalog_config
from cluster_catalog.common.errors import CatalogError
from cluster_catalog.common.logger import configure_logging
from cluster_catalog.common.settings import settings

app = typer.Typer(
    name="cluster-catalog",
    help="Keeps a live catalog of the sources and schemas of your data clusters.",
    no_args_is_help=True,
    add_completion=False,
)

ConfigOption = Annotated[Optional[pathlib.Path], typer.Option("--config", help="Path to cluster config YAML")]


def _config_path(config: Optional[pathlib.Path]) -> pathlib.Path:
    # Resolved late: the --env callback may have changed settings.
    return config if config is not None else pathlib.Path(settings.cluster_config_path)


@app.callback()
def global_callback(
    ctx: typer.Context,
    env: Annotated[Optional[str], typer.Option("--env", "-e", help="Environment name (e.g. dev, prod). Loads .env.<env>.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """
    cluster-catalog CLI Entry Point.
    """
    if env:
        settings.configure_env(env)
    configure_logging(
        level="DEBUG" if verbose else settings.log_level,
        json_format=settings.log_json,
    )
    ctx.obj = {"verbose": verbose}


@app.command()
def inspect(
    ctx: typer.Context,
    config: ConfigOption = None,
    cluster: Annotated[Optional[str], typer.Option("--cluster", help="Only inspect this cluster")] = None,
):
    """
    Initialize every cluster once and print its sources.
    """
    from cluster_catalog.cli.commands.inspect import run_inspect

    verbose = bool(ctx.obj and ctx.obj.get("verbose"))
    try:
        run_inspect(_config_path(config), cluster=cluster, verbose=verbose)
    except (CatalogError, FileNotFoundError) as e:
        print_error(str(e))
        sys.exit(1)


@app.command()
def watch(
    config: ConfigOption = None,
    duration: Annotated[Optional[float], typer.Option("--duration", help="Stop after this many seconds")] = None,
):
    """
    Run the catalog with its refresh schedule and print changes.
    """
    from cluster_catalog.cli.commands.watch import run_watch

    try:
        run_watch(_config_path(config), duration=duration)
    except (CatalogError, FileNotFoundError) as e:
        print_error(str(e))
        sys.exit(1)


@app.command()
def clusters(config: ConfigOption = None):
    """
    Validate the cluster config and print it without secrets.
    """
    try:
        catalog_config = load_catalog_config(_config_path(config))
    except (CatalogError, FileNotFoundError) as e:
        print_error(str(e))
        sys.exit(1)
    console.print_json(json.dumps(describe_config(catalog_config)))


@app.command()
def transports():
    """
    List the transports available for cluster engine types.
    """
    from cluster_catalog.cli.commands.transports import list_available_transports
    list_available_transports()


def main():
    app()


if __name__ == "__main__":
    main()
