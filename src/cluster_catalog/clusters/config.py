from __future__ import annotations

import os
import pathlib
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from cluster_catalog.clusters.models import NATIVE_CLUSTER, Cluster
from cluster_catalog.common.errors import ConfigurationError, ErrorCode
from cluster_catalog.common.logger import get_logger
from cluster_catalog.sources.models import ManagedExternal

logger = get_logger(__name__)

# Keys that mark a legacy single-cluster file (cluster fields at the top level).
_LEGACY_CLUSTER_KEYS = {"clusterName", "druidHost", "brokerHost", "host", "type"}


class SourceConfig(BaseModel):
    """A statically configured source on one cluster."""

    name: str
    cluster: str
    source: Optional[str] = None
    suppress_introspection: bool = Field(default=False, alias="suppressIntrospection")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @model_validator(mode="after")
    def _default_source(self) -> "SourceConfig":
        if not self.source:
            self.source = self.name
        return self


class CatalogFileConfig(BaseModel):
    """File-level schema for clusters.yaml."""

    version: int = Field(1, description="Schema version")
    clusters: List[Cluster] = Field(default_factory=list)
    sources: List[SourceConfig] = Field(default_factory=list)

    @field_validator("clusters", mode="before")
    @classmethod
    def _parse_clusters(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("'clusters' must be a list")
        clusters = []
        for item in value:
            try:
                clusters.append(Cluster.from_config(item) if isinstance(item, dict) else item)
            except ConfigurationError as e:
                raise ValueError(e.message) from e
        return clusters

    @model_validator(mode="after")
    def _check_references(self) -> "CatalogFileConfig":
        names = [c.name for c in self.clusters]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"duplicate cluster names: {duplicates}")

        known = set(names)
        for source in self.sources:
            if source.cluster == NATIVE_CLUSTER:
                continue
            if source.cluster not in known:
                raise ValueError(f"source {source.name} refers to an unknown cluster {source.cluster}")
        return self

    def get_cluster(self, name: str) -> Cluster:
        for cluster in self.clusters:
            if cluster.name == name:
                return cluster
        raise ConfigurationError(f"Cluster '{name}' not found", ErrorCode.UNKNOWN_CLUSTER)

    def sources_for_cluster(self, cluster_name: str) -> List[SourceConfig]:
        return [s for s in self.sources if s.cluster == cluster_name]


def parse_catalog_config(raw: Any) -> CatalogFileConfig:
    """
    Validates a parsed configuration document.

    Legacy single-cluster documents (cluster fields at the top level, no
    ``clusters`` list) are accepted as one cluster.

    Raises:
        ConfigurationError: If the document is invalid.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Cluster config must be a YAML mapping")

    if "clusters" not in raw and _LEGACY_CLUSTER_KEYS & set(raw):
        legacy = {k: v for k, v in raw.items() if k not in ("sources", "version")}
        raw = {
            "version": raw.get("version", 1),
            "clusters": [legacy],
            "sources": raw.get("sources", []),
        }

    try:
        return CatalogFileConfig.model_validate(raw)
    except ConfigurationError:
        raise
    except ValidationError as e:
        raise ConfigurationError(f"Cluster Configuration Invalid: {e}") from e


def load_catalog_config(path: pathlib.Path) -> CatalogFileConfig:
    """
    Loads the catalog configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        The validated CatalogFileConfig.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigurationError: If the config content is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Cluster config not found: {path}")

    try:
        # ${VAR} references (passwords) are resolved from the environment.
        raw = yaml.safe_load(os.path.expandvars(path.read_text(encoding="utf-8")))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML from {path}: {e}") from e

    config = parse_catalog_config(raw)
    logger.info(f"Loaded {len(config.clusters)} cluster(s) and {len(config.sources)} source(s) from {path}")
    return config


def initial_externals_for(config: CatalogFileConfig, cluster_name: str) -> List[ManagedExternal]:
    """Builds the statically configured ManagedExternals for one cluster."""
    cluster = config.get_cluster(cluster_name)
    externals: List[ManagedExternal] = []
    for source in config.sources_for_cluster(cluster_name):
        external = cluster.make_external(source.source, name=source.name, auto_discovered=False)
        external.suppress_introspection = source.suppress_introspection
        externals.append(external)
    return externals


def describe_config(config: CatalogFileConfig) -> Dict[str, Any]:
    """Returns a secrets-free summary of the configuration."""
    return {
        "version": config.version,
        "clusters": [c.to_dict() for c in config.clusters],
        "sources": [s.model_dump(by_alias=True) for s in config.sources],
    }
