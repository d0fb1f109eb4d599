"""
Attendance submission and roster loading for the marking screens.

Submissions go straight to the remote store when online and fall back to the
sync queue otherwise. Rosters are fetched online and cached for offline use.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from gmct_attendance.core.exceptions import RemoteSubmissionError, StorageError
from gmct_attendance.integrations.supabase.client import SupabaseClient
from gmct_attendance.schemas.attendance import AttendanceSubmission, AttendanceSummary, Member
from gmct_attendance.services.member_cache import MemberCacheRepository
from gmct_attendance.services.sync.connectivity import ConnectivityObserver
from gmct_attendance.services.sync.orchestrator import SyncOrchestrator
from gmct_attendance.services.sync.queue_repository import SyncQueueRepository

logger = logging.getLogger(__name__)


class SubmissionOutcome(str, Enum):
    SAVED = "saved"
    QUEUED = "queued"


@dataclass
class SubmissionResult:
    outcome: SubmissionOutcome
    summary: Optional[AttendanceSummary] = None
    queue_item_id: Optional[int] = None
    error: Optional[str] = None

    @property
    def message(self) -> str:
        if self.outcome == SubmissionOutcome.SAVED:
            return "Attendance saved"
        return "Attendance saved offline and will sync when possible"


class AttendanceService:
    """Submits attendance, queueing it locally when the remote write fails."""

    def __init__(
        self,
        remote: SupabaseClient,
        queue: SyncQueueRepository,
        connectivity: ConnectivityObserver,
        orchestrator: Optional[SyncOrchestrator] = None
    ):
        self.remote = remote
        self.queue = queue
        self.connectivity = connectivity
        self.orchestrator = orchestrator

    async def submit(self, submission: AttendanceSubmission) -> SubmissionResult:
        """
        Save attendance now or queue it for the next sync pass.

        Raises:
            StorageError: When the remote write was not possible and the local
                queue could not store the submission either
        """
        error = None
        if self.connectivity.is_online:
            try:
                summary = await self.remote.save_attendance(submission)
                return SubmissionResult(outcome=SubmissionOutcome.SAVED, summary=summary)
            except RemoteSubmissionError as e:
                logger.warning(f"Direct save failed for class {submission.class_number}, queueing: {e}")
                error = str(e)

        item_id = await self.queue.enqueue(submission)
        if self.orchestrator is not None:
            await self.orchestrator.refresh_pending_count()

        return SubmissionResult(outcome=SubmissionOutcome.QUEUED, queue_item_id=item_id, error=error)


class RosterService:
    """Loads class rosters online and serves the cached copy when offline."""

    def __init__(self, remote: SupabaseClient, cache: MemberCacheRepository,
                 connectivity: ConnectivityObserver):
        self.remote = remote
        self.cache = cache
        self.connectivity = connectivity

    async def load_class_members(self, class_number: int) -> List[Member]:
        if not self.connectivity.is_online:
            return await self.cache.get_cached_members(class_number)

        try:
            members = await self.remote.get_class_members(class_number)
        except RemoteSubmissionError as e:
            logger.warning(f"Roster fetch for class {class_number} failed, using cache: {e}")
            return await self.cache.get_cached_members(class_number)

        try:
            await self.cache.replace_class_roster(class_number, members)
        except StorageError as e:
            # The fresh roster is still usable without the cache
            logger.warning(f"Could not cache roster for class {class_number}: {e}")

        return members
