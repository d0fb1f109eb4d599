"""
Sync Orchestrator

Drains the offline sync queue against the remote store:
- Runs on app start, on the connectivity "became online" edge and on a
  periodic timer, never more than one pass at a time
- Sends pending items oldest first, one remote call per item
- Isolates per-item failures so one bad submission does not block the rest
- Purges synced items past the retention window after every pass
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, List, Optional, Protocol, Set

from gmct_attendance.models.sync_queue import SyncQueueItem, SyncQueueKind
from gmct_attendance.schemas.attendance import AttendanceSubmission
from gmct_attendance.services.sync.connectivity import ConnectivityObserver
from gmct_attendance.services.sync.queue_repository import SyncQueueRepository

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=7)


class SyncState(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"


class SyncTrigger(str, Enum):
    STARTUP = "startup"
    ONLINE = "online"
    TIMER = "timer"
    MANUAL = "manual"


class RemoteSubmissionEndpoint(Protocol):
    async def save_attendance(self, submission: AttendanceSubmission) -> Any:
        ...


@dataclass
class DrainResult:
    """Outcome of one pass over the pending queue."""
    trigger: SyncTrigger
    started_at: datetime
    finished_at: Optional[datetime] = None
    attempted: int = 0
    synced_ids: List[int] = field(default_factory=list)
    failed_ids: List[int] = field(default_factory=list)
    # Delivered remotely but the local synced flag could not be written
    unmarked_ids: List[int] = field(default_factory=list)
    purged: int = 0

    @property
    def fully_synced(self) -> bool:
        return not self.failed_ids and not self.unmarked_ids


@dataclass
class SyncStatus:
    """Snapshot for the pending / syncing indicator."""
    state: SyncState
    is_online: bool
    pending_count: int
    last_sync_at: Optional[datetime] = None
    last_result: Optional[DrainResult] = None

    @property
    def is_syncing(self) -> bool:
        return self.state == SyncState.SYNCING


StatusListener = Callable[[SyncStatus], None]


class SyncOrchestrator:
    """Idle/Syncing state machine over the sync queue."""

    def __init__(
        self,
        queue: SyncQueueRepository,
        remote: RemoteSubmissionEndpoint,
        connectivity: ConnectivityObserver,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.queue = queue
        self.remote = remote
        self.connectivity = connectivity
        self.retention = retention
        self.clock = clock

        self._state = SyncState.IDLE
        self._pending_count = 0
        self._last_sync_at: Optional[datetime] = None
        self._last_result: Optional[DrainResult] = None
        self._listeners: List[StatusListener] = []
        self._tasks: Set[asyncio.Task] = set()
        self._detach: List[Callable[[], None]] = []

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state == SyncState.SYNCING

    @property
    def pending_count(self) -> int:
        return self._pending_count

    def status(self) -> SyncStatus:
        return SyncStatus(
            state=self._state,
            is_online=self.connectivity.is_online,
            pending_count=self._pending_count,
            last_sync_at=self._last_sync_at,
            last_result=self._last_result
        )

    def add_status_listener(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def attach(self) -> None:
        """Subscribe to connectivity edges."""
        if self._detach:
            return
        self._detach.append(self.connectivity.on_online(self.handle_online))
        self._detach.append(self.connectivity.subscribe(lambda _online: self._notify()))

    def detach(self) -> None:
        for unsubscribe in self._detach:
            unsubscribe()
        self._detach.clear()

    async def refresh_pending_count(self) -> int:
        self._pending_count = await self.queue.count_pending()
        self._notify()
        return self._pending_count

    async def on_startup(self) -> Optional[DrainResult]:
        """Drain leftovers from a previous session, then purge."""
        pending = await self.refresh_pending_count()
        if pending and self.connectivity.is_online:
            return await self.request_sync(SyncTrigger.STARTUP)

        await self.purge()
        return None

    async def on_timer_tick(self) -> Optional[DrainResult]:
        if not self.connectivity.is_online:
            return None

        pending = await self.refresh_pending_count()
        if not pending:
            return None
        return await self.request_sync(SyncTrigger.TIMER)

    def handle_online(self) -> asyncio.Task:
        """Connectivity trigger; schedules a drain without waiting for it."""
        task = asyncio.ensure_future(self.request_sync(SyncTrigger.ONLINE))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_idle(self) -> None:
        """Wait for drains scheduled by ``handle_online``."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def request_sync(self, trigger: SyncTrigger = SyncTrigger.MANUAL) -> Optional[DrainResult]:
        """
        Run one drain pass if the guard allows it.

        Returns:
            The pass result, or None when offline or a pass is already running
        """
        if not self.connectivity.is_online:
            logger.debug(f"Sync ({trigger.value}) skipped: offline")
            return None

        # Check and set with no await in between
        if self._state == SyncState.SYNCING:
            logger.debug(f"Sync ({trigger.value}) skipped: a pass is already running")
            return None
        self._state = SyncState.SYNCING

        result = DrainResult(trigger=trigger, started_at=self.clock())
        try:
            self._pending_count = await self.queue.count_pending()
            self._notify()
            await self._drain(result)
        finally:
            result.finished_at = self.clock()
            self._pending_count = await self.queue.count_pending()
            self._last_sync_at = result.finished_at
            self._last_result = result
            self._state = SyncState.IDLE
            self._notify()

            result.purged = await self.purge()

        logger.info(
            f"Sync pass ({trigger.value}) finished: {len(result.synced_ids)}/{result.attempted} synced, "
            f"{len(result.failed_ids)} still pending, {result.purged} purged"
        )
        return result

    async def purge(self) -> int:
        return await self.queue.purge_synced_older_than(self.retention)

    async def _drain(self, result: DrainResult) -> None:
        items = await self.queue.list_pending()

        for item in items:
            result.attempted += 1
            try:
                await self._dispatch(item)
            except Exception as e:
                # Left pending; retried on the next trigger
                logger.error(f"Error syncing item {item.id}: {e}")
                result.failed_ids.append(item.id)
                continue

            if not await self.queue.mark_synced(item.id):
                # Still pending locally; the next pass re-sends it to the upsert
                logger.warning(f"Item {item.id} was delivered but could not be marked as synced")
                result.unmarked_ids.append(item.id)
                continue
            result.synced_ids.append(item.id)

    async def _dispatch(self, item: SyncQueueItem) -> None:
        if item.kind != SyncQueueKind.ATTENDANCE_SUBMISSION.value:
            raise ValueError(f"Unknown sync item kind: {item.kind}")

        submission = AttendanceSubmission.from_payload(item.payload)
        await self.remote.save_attendance(submission)

    def _notify(self) -> None:
        if not self._listeners:
            return
        status = self.status()
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error(f"Sync status listener failed: {e}")
