"""Command line interface for cluster-catalog."""
from cluster_catalog.cli.main import app

__all__ = ["app"]
