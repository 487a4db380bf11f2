"""Cluster configuration models and catalog config loading."""
from cluster_catalog.clusters.models import (
    NATIVE_CLUSTER,
    Cluster,
    EngineType,
    SourceListScan,
)
from cluster_catalog.clusters.config import (
    CatalogFileConfig,
    SourceConfig,
    initial_externals_for,
    load_catalog_config,
    parse_catalog_config,
)

__all__ = [
    "NATIVE_CLUSTER",
    "Cluster",
    "EngineType",
    "SourceListScan",
    "CatalogFileConfig",
    "SourceConfig",
    "initial_externals_for",
    "load_catalog_config",
    "parse_catalog_config",
]
