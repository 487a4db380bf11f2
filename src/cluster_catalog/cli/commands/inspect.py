import asyncio
import pathlib
from typing import List, Optional

from rich.table import Table

from cluster_catalog.catalog import Catalog
from cluster_catalog.cli.console import console, print_step, state_markup
from cluster_catalog.clusters.config import CatalogFileConfig, load_catalog_config
from cluster_catalog.manager.cluster_manager import ClusterManager


def _select(config: CatalogFileConfig, cluster: Optional[str]) -> CatalogFileConfig:
    if cluster is None:
        return config
    selected = config.get_cluster(cluster)
    return CatalogFileConfig(
        version=config.version,
        clusters=[selected],
        sources=config.sources_for_cluster(cluster),
    )


def build_sources_table(managers: List[ClusterManager]) -> Table:
    table = Table(title="Managed Sources")
    table.add_column("Cluster", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Source")
    table.add_column("Auto", justify="center")
    table.add_column("State")
    table.add_column("Attrs", justify="right")

    for manager in managers:
        for external in manager.externals:
            label = external.state_label()
            if external.suppress_introspection:
                label = "suppressed"
            schema = external.schema_descriptor
            table.add_row(
                manager.name,
                external.name,
                external.source,
                "✔" if external.auto_discovered else "",
                state_markup(label),
                str(len(schema.attributes)) if schema else "-",
            )
    return table


async def _inspect(config: CatalogFileConfig, verbose: bool) -> List[ClusterManager]:
    catalog = Catalog(config)
    try:
        await catalog.start(schedule=False)
        if verbose:
            for manager in catalog.managers:
                for external in manager.externals:
                    if external.last_failure is not None:
                        console.print(f"[error]{manager.name}/{external.name}: {external.last_failure.message}[/error]")
        return catalog.managers
    finally:
        await catalog.stop()


def run_inspect(config_path: pathlib.Path, cluster: Optional[str] = None, verbose: bool = False) -> None:
    """Initializes the catalog once and prints every managed source."""
    config = _select(load_catalog_config(config_path), cluster)
    print_step(f"Inspecting {len(config.clusters)} cluster(s) from {config_path}")
    managers = asyncio.run(_inspect(config, verbose))
    for manager in managers:
        console.print(f"[cluster]{manager.name}[/cluster] version [info]{manager.version or 'unknown'}[/info]")
    console.print(build_sources_table(managers))
