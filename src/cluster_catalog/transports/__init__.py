"""Transports: the per-cluster connection used to query a backend."""
from cluster_catalog.transports.base import Transport, TransportCredentials
from cluster_catalog.transports.druid import DruidTransport
from cluster_catalog.transports.relational import SQLAlchemyTransport
from cluster_catalog.transports.factory import (
    build_transport,
    build_transport_for_cluster,
    discover_transports,
)

__all__ = [
    "Transport",
    "TransportCredentials",
    "DruidTransport",
    "SQLAlchemyTransport",
    "build_transport",
    "build_transport_for_cluster",
    "discover_transports",
]
