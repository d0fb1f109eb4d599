"""
Offline sync subsystem

Components:
- Durable sync queue of attendance submissions
- Connectivity observer with online/offline edge notifications
- Orchestrator that drains the queue on startup, reconnect and timer ticks
"""

from .queue_repository import SyncQueueRepository
from .connectivity import ConnectivityObserver, HttpReachabilityProbe
from .orchestrator import (
    SyncOrchestrator,
    SyncState,
    SyncTrigger,
    SyncStatus,
    DrainResult,
    DEFAULT_RETENTION
)

__all__ = [
    "SyncQueueRepository",
    "ConnectivityObserver",
    "HttpReachabilityProbe",
    "SyncOrchestrator",
    "SyncState",
    "SyncTrigger",
    "SyncStatus",
    "DrainResult",
    "DEFAULT_RETENTION",
]
