from rich.table import Table

from cluster_catalog.cli.console import console
from cluster_catalog.transports.factory import BUILTIN_TRANSPORTS, discover_transports


def list_available_transports() -> None:
    """Discovers and displays every transport the catalog can build."""
    transports = discover_transports()

    table = Table(title="Available Transports")
    table.add_column("Engine", style="cyan", no_wrap=True)
    table.add_column("Class", style="magenta")
    table.add_column("Origin", style="green")

    for name, cls in sorted(transports.items()):
        origin = "built-in" if BUILTIN_TRANSPORTS.get(name) is cls else "plugin"
        table.add_row(name, f"{cls.__module__}.{cls.__name__}", origin)

    console.print(table)
