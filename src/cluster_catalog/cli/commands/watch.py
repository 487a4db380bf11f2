import asyncio
import pathlib
from typing import Optional

from cluster_catalog.catalog import Catalog
from cluster_catalog.cli.console import console, print_step, print_success
from cluster_catalog.clusters.config import load_catalog_config
from cluster_catalog.sources.models import SourceSchema


def print_change(cluster: str, name: str, schema: Optional[SourceSchema]) -> None:
    if schema is None:
        console.print(f"[cluster]{cluster}[/cluster] [info]+ {name}[/info] registered")
        return
    attributes = ", ".join(schema.attribute_names())
    console.print(f"[cluster]{cluster}[/cluster] [success]~ {name}[/success] ({attributes})")


async def _watch(catalog: Catalog, duration: Optional[float]) -> None:
    await catalog.start()
    try:
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)
    finally:
        await catalog.stop()


def run_watch(config_path: pathlib.Path, duration: Optional[float] = None) -> None:
    """Starts the catalog with its refresh schedule and prints changes as they arrive."""
    config = load_catalog_config(config_path)
    catalog = Catalog(config, on_external_change=print_change)
    print_step(f"Watching {len(config.clusters)} cluster(s); press Ctrl-C to stop")
    try:
        asyncio.run(_watch(catalog, duration))
    except KeyboardInterrupt:
        pass
    print_success("Stopped")
