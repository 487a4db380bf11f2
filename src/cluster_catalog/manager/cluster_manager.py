"""
Cluster Manager: owns one cluster's transport and source registry.

Initialization runs three phases in strict order (version detection, source
discovery, introspection fan-out); afterwards the two refresh operations can
be invoked independently, usually by a RefreshScheduler. Every phase catches
its own failures, logs them with cluster/source context, and turns them into
a no-op for the cycle, so none of the public coroutines ever raise.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Iterable, List, Optional

from cluster_catalog.clusters.models import Cluster, SourceListScan
from cluster_catalog.common.errors import ConfigurationError, ErrorCode, IntrospectionFailure
from cluster_catalog.common.logger import cluster_context, get_logger
from cluster_catalog.manager.notifier import ChangeListener, ChangeNotifier
from cluster_catalog.sources.models import Failed, Introspected, ManagedExternal
from cluster_catalog.sources.naming import NamingStrategy, source_name
from cluster_catalog.sources.registry import SourceRegistry
from cluster_catalog.transports.base import Transport
from cluster_catalog.transports.factory import build_transport_for_cluster

logger = get_logger(__name__)


class ClusterManager:
    """
    Keeps the catalog of one cluster's sources and schemas fresh.

    Args:
        cluster: The cluster configuration.
        initial_externals: Statically configured sources. They are re-bound to
            this manager; a schema introspected through another cluster is dropped.
        on_external_change: Listener called with ``(name, schema_or_None)``.
        generate_external_name: Naming strategy for discovered sources.
        transport: Pre-built transport (built from the cluster when omitted).
        concurrency_limit: Max in-flight transport calls when building the transport.
        verbose: Log per-source discovery decisions.

    Raises:
        ConfigurationError: If the cluster is missing, the transport can not be
            built, or two initial sources share a name.
    """

    def __init__(
        self,
        cluster: Cluster,
        *,
        initial_externals: Optional[Iterable[ManagedExternal]] = None,
        on_external_change: Optional[ChangeListener] = None,
        generate_external_name: Optional[NamingStrategy] = None,
        transport: Optional[Transport] = None,
        concurrency_limit: Optional[int] = None,
        verbose: bool = False,
    ):
        if cluster is None:
            raise ConfigurationError("must have cluster")
        self.cluster = cluster
        self.verbose = verbose
        self.version: Optional[str] = cluster.version
        self.generate_external_name: NamingStrategy = generate_external_name or source_name

        self.notifier = ChangeNotifier()
        if on_external_change is not None:
            self.notifier.subscribe(on_external_change)

        self.transport = transport or build_transport_for_cluster(cluster, concurrency_limit)

        self._registry = SourceRegistry(
            external.bind(cluster.name) for external in (initial_externals or [])
        )
        self._registry_lock = asyncio.Lock()

    def __str__(self):
        return f"ClusterManager({self.cluster.name})"

    @property
    def name(self) -> str:
        return self.cluster.name

    @property
    def externals(self) -> List[ManagedExternal]:
        """Snapshot of the managed sources in registration order."""
        return self._registry.snapshot()

    def get_external_by_name(self, name: str) -> Optional[ManagedExternal]:
        """Returns the managed source with this logical name, or None."""
        return self._registry.get(name)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        return self.notifier.subscribe(listener)

    async def init(self) -> None:
        """Detects the version, discovers sources, then introspects them all."""
        with cluster_context(self.cluster.name):
            if not self.version:
                await self._detect_version()

            if self.cluster.source_list_scan == SourceListScan.AUTO:
                await self._discover_sources()

            await self._introspect_sources()

    async def refresh_source_list(self) -> None:
        """Checks the backend for sources that are not managed yet."""
        with cluster_context(self.cluster.name):
            if self.cluster.source_list_scan != SourceListScan.AUTO:
                logger.debug(f"Source list scan is disabled for cluster '{self.cluster.name}'")
                return
            await self._discover_sources()

    async def reintrospect_sources(self) -> None:
        """Re-reads the schema of every managed source."""
        with cluster_context(self.cluster.name):
            await self._introspect_sources()

    async def refresh(self) -> None:
        """Full resync: source list first, then reintrospection."""
        await self.refresh_source_list()
        await self.reintrospect_sources()

    async def on_load(self) -> None:
        """Runs the refreshes the cluster asks for whenever the catalog is loaded."""
        if self.cluster.source_list_refresh_on_load:
            await self.refresh_source_list()
        if self.cluster.source_reintrospect_on_load:
            await self.reintrospect_sources()

    async def close(self) -> None:
        await self.transport.close()

    async def _detect_version(self) -> None:
        cluster = self.cluster
        try:
            version = await self.transport.get_version()
        except Exception as e:
            logger.error(
                f"Failed to get version from cluster '{cluster.name}' because {e}",
                extra={"error_code": ErrorCode.VERSION_DETECTION_FAILED.value},
            )
            return
        self.version = version
        logger.info(f"Detected cluster '{cluster.name}' running version {version}")

    async def _discover_sources(self) -> List[ManagedExternal]:
        cluster = self.cluster
        try:
            sources = await self.transport.get_source_list()
        except Exception as e:
            logger.error(
                f"Failed to get source list from cluster '{cluster.name}' because {e}",
                extra={"error_code": ErrorCode.SOURCE_LIST_FAILED.value},
            )
            return []

        logger.info(f"For cluster '{cluster.name}' got sources: [{', '.join(sources)}]")

        added: List[ManagedExternal] = []
        async with self._registry_lock:
            for source in sources:
                existing = self._registry.find_by_source(source)
                if existing is not None:
                    if self.verbose:
                        logger.info(f"Cluster '{cluster.name}' already has an external for '{source}' ('{existing.name}')")
                    continue

                try:
                    candidate = self.generate_external_name(source)
                except Exception as e:
                    logger.error(
                        f"Cluster '{cluster.name}' could not name source '{source}' because {e}",
                        extra={"source": source},
                    )
                    continue

                name = self._registry.unique_name(candidate)
                if name != candidate:
                    logger.warning(
                        f"Cluster '{cluster.name}': name '{candidate}' for source '{source}' is taken, using '{name}'",
                        extra={"source": source},
                    )
                if self.verbose:
                    logger.info(f"Cluster '{cluster.name}' making external for '{source}'")

                added.append(self._registry.add(cluster.make_external(source, name=name)))

        for external in added:
            self.notifier.notify(external.name, None)
        return added

    async def _introspect_sources(self) -> None:
        async with self._registry_lock:
            targets = [e for e in self._registry if not e.suppress_introspection]
        if not targets:
            return
        await asyncio.gather(*(self._introspect_one(external) for external in targets))

    async def _introspect_one(self, managed_external: ManagedExternal) -> bool:
        cluster = self.cluster
        try:
            schema = await self.transport.introspect(managed_external.source)
        except Exception as e:
            logger.error(
                f"Cluster '{cluster.name}' could not introspect '{managed_external.name}' because: {e}",
                extra={"source": managed_external.source, "error_code": ErrorCode.INTROSPECTION_FAILED.value},
            )
            managed_external.state = Failed(
                failure=IntrospectionFailure.from_exception(managed_external.source, e),
                last_schema=managed_external.schema_descriptor,
            )
            return False

        schema = schema.model_copy(update={"cluster": cluster.name, "version": self.version})
        managed_external.state = Introspected(schema)
        self.notifier.notify(managed_external.name, schema)
        return True
