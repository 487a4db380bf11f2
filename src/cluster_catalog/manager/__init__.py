"""Per-cluster managers, their change notifier and refresh scheduler."""
from cluster_catalog.manager.notifier import ChangeListener, ChangeNotifier
from cluster_catalog.manager.cluster_manager import ClusterManager
from cluster_catalog.manager.scheduler import RefreshScheduler

__all__ = ["ChangeListener", "ChangeNotifier", "ClusterManager", "RefreshScheduler"]
