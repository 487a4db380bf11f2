"""
Refresh Scheduler: periodic timers for cluster managers.

Each manager gets up to two timers (source list rescan, reintrospection).
Timers are plain asyncio tasks; cancelling one stops future ticks but lets
an operation already running finish, because every tick is shielded.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Dict, List, Set, Union

from cluster_catalog.clusters.models import SourceListScan
from cluster_catalog.common.logger import cluster_context, get_logger
from cluster_catalog.manager.cluster_manager import ClusterManager

logger = get_logger(__name__)

Operation = Callable[[], Awaitable[None]]


class RefreshScheduler:
    """Owns the cancellable refresh timers of every scheduled manager."""

    def __init__(self):
        self._timers: Dict[str, List[asyncio.Task]] = {}
        self._in_flight: Set[asyncio.Task] = set()

    def schedule(self, manager: ClusterManager) -> List[asyncio.Task]:
        """
        Arms the refresh timers the manager's cluster asks for.

        Must be called from a running event loop. Scheduling a cluster that
        already has timers replaces them.
        """
        cluster = manager.cluster
        self.cancel(cluster.name)

        timers: List[asyncio.Task] = []
        if cluster.source_list_scan == SourceListScan.AUTO:
            timers.append(self._start_timer(
                cluster.name, "source list refresh",
                cluster.source_list_refresh_interval, manager.refresh_source_list,
            ))
        if cluster.source_reintrospect_interval:
            timers.append(self._start_timer(
                cluster.name, "reintrospection",
                cluster.source_reintrospect_interval, manager.reintrospect_sources,
            ))

        if timers:
            self._timers[cluster.name] = timers
        return timers

    def is_scheduled(self, name: str) -> bool:
        return any(not t.done() for t in self._timers.get(name, []))

    def cancel(self, manager_or_name: Union[ClusterManager, str]) -> bool:
        """Stops the timers of one cluster. Returns False if it had none."""
        name = manager_or_name if isinstance(manager_or_name, str) else manager_or_name.cluster.name
        timers = self._timers.pop(name, [])
        for timer in timers:
            timer.cancel()
        if timers:
            logger.debug(f"Cancelled {len(timers)} refresh timer(s) for cluster '{name}'")
        return bool(timers)

    async def shutdown(self) -> None:
        """Cancels every timer and waits for in-flight operations to settle."""
        timers = [t for ts in self._timers.values() for t in ts]
        for name in list(self._timers):
            self.cancel(name)
        await asyncio.gather(*timers, return_exceptions=True)
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def _start_timer(self, cluster_name: str, label: str, interval_ms: int, operation: Operation) -> asyncio.Task:
        logger.info(f"Scheduling {label} for cluster '{cluster_name}' every {interval_ms}ms")
        return asyncio.create_task(
            self._run_periodically(cluster_name, label, interval_ms, operation),
            name=f"{cluster_name}:{label}",
        )

    async def _run_periodically(self, cluster_name: str, label: str, interval_ms: int, operation: Operation) -> None:
        with cluster_context(cluster_name):
            while True:
                await asyncio.sleep(interval_ms / 1000)
                tick = asyncio.ensure_future(operation())
                self._in_flight.add(tick)
                tick.add_done_callback(self._in_flight.discard)
                try:
                    await asyncio.shield(tick)
                except asyncio.CancelledError:
                    logger.debug(f"{label} timer for '{cluster_name}' cancelled; in-flight run continues")
                    raise
                except Exception:
                    logger.exception(f"{label} for cluster '{cluster_name}' raised")
