"""Source descriptors, their registry and naming strategies."""
from cluster_catalog.sources.models import (
    Attribute,
    AttributeType,
    Failed,
    Introspected,
    IntrospectionState,
    ManagedExternal,
    SourceSchema,
    Unintrospected,
)
from cluster_catalog.sources.naming import NamingStrategy, cluster_scoped, prefixed, source_name
from cluster_catalog.sources.registry import SourceRegistry

__all__ = [
    "Attribute",
    "AttributeType",
    "Failed",
    "Introspected",
    "IntrospectionState",
    "ManagedExternal",
    "SourceSchema",
    "Unintrospected",
    "NamingStrategy",
    "cluster_scoped",
    "prefixed",
    "source_name",
    "SourceRegistry",
]
