from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .core.config import Settings
from .core.database import LocalDatabase
from .integrations.supabase.client import SupabaseClient
from .services.attendance_service import AttendanceService, RosterService
from .services.member_cache import MemberCacheRepository
from .services.sync.connectivity import ConnectivityObserver, HttpReachabilityProbe
from .services.sync.orchestrator import SyncOrchestrator
from .services.sync.queue_repository import SyncQueueRepository
from .tasks.sync_tasks import ReachabilityMonitor, SyncTaskManager


@dataclass(frozen=True)
class Container:
    settings: Settings
    database: LocalDatabase

    queue_repo: SyncQueueRepository
    member_cache: MemberCacheRepository

    remote: SupabaseClient
    connectivity: ConnectivityObserver
    orchestrator: SyncOrchestrator

    attendance_service: AttendanceService
    roster_service: RosterService
    task_manager: SyncTaskManager


def build_container(
    settings: Settings,
    *,
    database: Optional[LocalDatabase] = None,
    remote: Optional[SupabaseClient] = None,
    initially_online: bool = False,
) -> Container:
    database = database or LocalDatabase(settings.LOCAL_DATABASE_URL, echo=settings.DATABASE_ECHO)
    remote = remote or SupabaseClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        timeout=settings.REMOTE_TIMEOUT_SECONDS,
    )

    queue_repo = SyncQueueRepository(database)
    member_cache = MemberCacheRepository(database)
    connectivity = ConnectivityObserver(initially_online=initially_online)

    orchestrator = SyncOrchestrator(
        queue_repo,
        remote,
        connectivity,
        retention=timedelta(days=settings.SYNC_RETENTION_DAYS),
    )

    attendance_service = AttendanceService(remote, queue_repo, connectivity, orchestrator=orchestrator)
    roster_service = RosterService(remote, member_cache, connectivity)

    monitor = None
    if settings.CONNECTIVITY_PROBE_ENABLED:
        monitor = ReachabilityMonitor(
            connectivity,
            HttpReachabilityProbe(
                settings.CONNECTIVITY_PROBE_URL,
                timeout=settings.CONNECTIVITY_PROBE_TIMEOUT_SECONDS,
            ),
        )
    task_manager = SyncTaskManager(
        orchestrator,
        interval_seconds=settings.SYNC_INTERVAL_SECONDS,
        monitor=monitor,
        probe_interval_seconds=settings.CONNECTIVITY_PROBE_INTERVAL_SECONDS,
    )

    return Container(
        settings=settings,
        database=database,
        queue_repo=queue_repo,
        member_cache=member_cache,
        remote=remote,
        connectivity=connectivity,
        orchestrator=orchestrator,
        attendance_service=attendance_service,
        roster_service=roster_service,
        task_manager=task_manager,
    )
