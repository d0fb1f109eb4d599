from .sync_tasks import SyncTaskManager, ReachabilityMonitor

__all__ = ["SyncTaskManager", "ReachabilityMonitor"]
