from .member import CachedMember
from .sync_queue import SyncQueueItem, SyncQueueKind

__all__ = [
    "CachedMember",
    "SyncQueueItem",
    "SyncQueueKind",
]
