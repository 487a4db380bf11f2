from importlib.metadata import entry_points
from typing import Dict, Optional, Type, Union

from cluster_catalog.clusters.models import Cluster, EngineType
from cluster_catalog.common.errors import ConfigurationError, ErrorCode
from cluster_catalog.common.logger import get_logger
from cluster_catalog.common.resilience import create_breaker
from cluster_catalog.common.settings import settings
from cluster_catalog.transports.base import Transport, TransportCredentials
from cluster_catalog.transports.druid import DruidTransport
from cluster_catalog.transports.relational import SQLAlchemyTransport

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "cluster_catalog.transports"

BUILTIN_TRANSPORTS: Dict[str, Type[Transport]] = {
    EngineType.DRUID.value: DruidTransport,
    EngineType.MYSQL.value: SQLAlchemyTransport,
    EngineType.POSTGRES.value: SQLAlchemyTransport,
}


def discover_transports() -> Dict[str, Type[Transport]]:
    """Returns the built-in transports plus any installed via the 'cluster_catalog.transports' entry point.

    Returns:
        Dict[str, Type[Transport]]: Dict mapping engine type (e.g., 'postgres')
            to the Transport class.
    """
    transports = dict(BUILTIN_TRANSPORTS)
    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            transports[ep.name] = ep.load()
        except Exception as e:
            logger.error(f"Failed to load transport {ep.name}: {e}")
    return transports


def build_transport(
    engine_type: Union[EngineType, str, None],
    host: Optional[str],
    timeout: int,
    concurrency_limit: Optional[int] = None,
    credentials: Optional[TransportCredentials] = None,
    *,
    introspection_strategy: Optional[str] = None,
    cluster_name: Optional[str] = None,
) -> Transport:
    """
    Builds the transport for an engine type.

    Args:
        engine_type: Engine to talk to ('druid', 'mysql', 'postgres' or a plugin name).
        host: Broker or database host.
        timeout: Per-call timeout in milliseconds.
        concurrency_limit: Max simultaneous in-flight calls (defaults to settings).
        credentials: Database/user/password for relational engines.
        introspection_strategy: Druid introspection strategy.
        cluster_name: Used to name the breaker and to tag transport errors.

    Raises:
        ConfigurationError: If the engine type is unknown or required
            parameters are missing.
    """
    if not engine_type:
        raise ConfigurationError(
            f"cluster '{cluster_name}' must have an engine type",
            ErrorCode.UNKNOWN_ENGINE,
        )
    key = engine_type.value if isinstance(engine_type, EngineType) else str(engine_type).lower()

    available = discover_transports()
    if key not in available:
        raise ConfigurationError(
            f"No transport found for engine type: '{key}'. "
            f"Available: {sorted(available.keys())}.",
            ErrorCode.UNKNOWN_ENGINE,
        )
    if not host:
        raise ConfigurationError(f"cluster '{cluster_name}' must specify a host", ErrorCode.MISSING_CREDENTIALS)

    TransportCls = available[key]
    if getattr(TransportCls, "requires_database", False) and (credentials is None or not credentials.database):
        raise ConfigurationError(
            f"cluster '{cluster_name}' ({key}) must specify a database",
            ErrorCode.MISSING_CREDENTIALS,
        )

    breaker = create_breaker(
        name=f"{cluster_name or key}-transport",
        fail_max=settings.breaker_fail_max,
        reset_timeout=settings.breaker_reset_timeout_sec,
        exclude=[TransportCls.is_source_error],
    )
    return TransportCls(
        host,
        timeout=timeout,
        concurrency_limit=concurrency_limit or settings.transport_concurrency_limit,
        credentials=credentials,
        engine_type=key,
        cluster_name=cluster_name,
        breaker=breaker,
        introspection_strategy=introspection_strategy,
    )


def build_transport_for_cluster(cluster: Cluster, concurrency_limit: Optional[int] = None) -> Transport:
    """Builds the transport described by a cluster's configuration."""
    credentials = None
    if cluster.database or cluster.user or cluster.password:
        credentials = TransportCredentials(
            database=cluster.database,
            user=cluster.user,
            password=cluster.password,
        )
    return build_transport(
        cluster.type,
        cluster.host,
        cluster.timeout,
        concurrency_limit,
        credentials,
        introspection_strategy=cluster.introspection_strategy,
        cluster_name=cluster.name,
    )
