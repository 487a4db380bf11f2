"""
Catalog: one ClusterManager per configured cluster.

The catalog is the operator-facing entry point. It wires each cluster's
static sources into its manager, starts every manager concurrently, and hands
the managers to a RefreshScheduler.
"""
from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional, Protocol

from cluster_catalog.clusters.config import CatalogFileConfig, initial_externals_for
from cluster_catalog.common.errors import ConfigurationError, ErrorCode
from cluster_catalog.common.logger import get_logger
from cluster_catalog.manager.cluster_manager import ClusterManager
from cluster_catalog.manager.scheduler import RefreshScheduler
from cluster_catalog.sources.models import ManagedExternal, SourceSchema
from cluster_catalog.sources.naming import NamingStrategy

logger = get_logger(__name__)

ManagerFactory = Callable[..., ClusterManager]


class CatalogListener(Protocol):
    def __call__(self, cluster: str, name: str, schema: Optional[SourceSchema]) -> None:
        ...


class Catalog:
    """
    Multi-cluster source catalog.

    Args:
        config: Validated catalog configuration.
        on_external_change: Listener called with ``(cluster, name, schema_or_None)``.
        generate_external_name: Naming strategy shared by every manager.
        scheduler: Refresh scheduler (a new one when omitted).
        manager_factory: Builds each ClusterManager; tests pass one that injects fake transports.

    Raises:
        ConfigurationError: If any cluster can not be managed.
    """

    def __init__(
        self,
        config: CatalogFileConfig,
        *,
        on_external_change: Optional[CatalogListener] = None,
        generate_external_name: Optional[NamingStrategy] = None,
        scheduler: Optional[RefreshScheduler] = None,
        manager_factory: ManagerFactory = ClusterManager,
    ):
        self.config = config
        self.scheduler = scheduler or RefreshScheduler()
        self._on_external_change = on_external_change
        self._managers: Dict[str, ClusterManager] = {}
        self._started = False
        self._start_task: Optional["asyncio.Future[None]"] = None

        for cluster in config.clusters:
            self._managers[cluster.name] = manager_factory(
                cluster,
                initial_externals=initial_externals_for(config, cluster.name),
                on_external_change=self._listener_for(cluster.name),
                generate_external_name=generate_external_name,
            )

    def _listener_for(self, cluster_name: str):
        def _forward(name: str, schema: Optional[SourceSchema]) -> None:
            if self._on_external_change is not None:
                self._on_external_change(cluster_name, name, schema)
        return _forward

    @property
    def managers(self) -> List[ClusterManager]:
        return list(self._managers.values())

    @property
    def started(self) -> bool:
        return self._started

    def get_manager(self, name: str) -> ClusterManager:
        manager = self._managers.get(name)
        if manager is None:
            raise ConfigurationError(f"Cluster '{name}' not found", ErrorCode.UNKNOWN_CLUSTER)
        return manager

    def find_external(self, cluster: str, name: str) -> Optional[ManagedExternal]:
        manager = self._managers.get(cluster)
        if manager is None:
            return None
        return manager.get_external_by_name(name)

    async def start(self, schedule: bool = True) -> None:
        """Initializes every manager concurrently, then arms their refresh timers.

        Overlapping calls wait on the same start instead of running init twice.
        """
        if self._start_task is None:
            self._start_task = asyncio.ensure_future(self._start(schedule))
        await asyncio.shield(self._start_task)

    async def _start(self, schedule: bool) -> None:
        logger.info(f"Starting catalog with {len(self._managers)} cluster(s)")
        await asyncio.gather(*(m.init() for m in self._managers.values()))
        if schedule:
            for manager in self._managers.values():
                self.scheduler.schedule(manager)
        self._started = True

    async def reload(self) -> None:
        """Runs each manager's load-time refreshes (``*_on_load`` flags)."""
        await asyncio.gather(*(m.on_load() for m in self._managers.values()))

    async def stop(self) -> None:
        """Cancels timers and closes every transport."""
        await self.scheduler.shutdown()
        results = await asyncio.gather(*(m.close() for m in self._managers.values()), return_exceptions=True)
        for manager, result in zip(self._managers.values(), results):
            if isinstance(result, Exception):
                logger.error(f"Failed to close transport of cluster '{manager.name}': {result}")
        self._started = False
        self._start_task = None
