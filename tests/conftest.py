"""
Shared fixtures for the offline sync tests.
"""

import asyncio
import uuid
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from gmct_attendance.core.database import LocalDatabase
from gmct_attendance.core.exceptions import RemoteSubmissionError
from gmct_attendance.schemas.attendance import AttendanceStatus, AttendanceSubmission, AttendanceSummary
from gmct_attendance.services.member_cache import MemberCacheRepository
from gmct_attendance.services.sync.connectivity import ConnectivityObserver
from gmct_attendance.services.sync.orchestrator import SyncOrchestrator
from gmct_attendance.services.sync.queue_repository import SyncQueueRepository


class FakeClock:
    """Settable clock for retention tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeRemoteStore:
    """
    In-memory stand-in for the remote attendance tables.

    Summary rows upsert on (class_number, attendance_date, service_type) and
    member rows on (attendance_id, member_id), like the real backend.
    """

    def __init__(self):
        self.calls: List[AttendanceSubmission] = []
        self.summaries: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.member_rows: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self.fail_when: Optional[Callable[[AttendanceSubmission], bool]] = None
        self.gate: Optional[asyncio.Event] = None
        self.entered = asyncio.Event()

    async def save_attendance(self, submission: AttendanceSubmission) -> AttendanceSummary:
        self.calls.append(submission)
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_when is not None and self.fail_when(submission):
            raise RemoteSubmissionError("Service unavailable", status_code=503)

        key = (str(submission.class_number), submission.date.isoformat(), submission.service_type.value)
        counts = submission.summary_counts()
        existing = self.summaries.get(key)
        row = {
            'id': existing['id'] if existing else str(uuid.uuid4()),
            'class_number': key[0],
            'attendance_date': key[1],
            'service_type': key[2],
            'class_leader_name': submission.leader_name,
            'total_members_present': counts['present'],
            'total_members_absent': counts['absent'],
            'total_members_sick': counts['sick'],
            'total_members_travel': counts['travel'],
            'total_visitors': 0,
        }
        self.summaries[key] = row
        for record in submission.member_records:
            self.member_rows[(row['id'], record.member_id)] = {
                'attendance_id': row['id'],
                'member_id': record.member_id,
                'class_number': key[0],
                'status': record.status.value,
            }
        return AttendanceSummary.model_validate(row)

    def member_statuses(self, attendance_id: str) -> Dict[str, str]:
        return {
            member_id: row['status']
            for (att_id, member_id), row in self.member_rows.items()
            if att_id == attendance_id
        }


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 10, 9, 0, 0))


@pytest_asyncio.fixture
async def database(tmp_path):
    """File-backed local store, fresh per test."""
    db = LocalDatabase(f"sqlite+aiosqlite:///{tmp_path / 'gmct_test.db'}")
    await db.init_db()
    yield db
    await db.dispose()


@pytest.fixture
def queue_repo(database, clock):
    return SyncQueueRepository(database, clock=clock)


@pytest.fixture
def member_cache(database):
    return MemberCacheRepository(database)


@pytest.fixture
def connectivity():
    return ConnectivityObserver(initially_online=False)


@pytest.fixture
def remote():
    return FakeRemoteStore()


@pytest.fixture
def orchestrator(queue_repo, remote, connectivity, clock):
    orchestrator = SyncOrchestrator(queue_repo, remote, connectivity, clock=clock)
    orchestrator.attach()
    yield orchestrator
    orchestrator.detach()


@pytest.fixture
def make_submission():
    """Factory for attendance submissions."""

    def _make(
        class_number: int = 3,
        attendance_date: str = "2024-03-10",
        service_type: str = "sunday",
        records: Optional[List[Tuple[str, str]]] = None,
        leader_name: Optional[str] = "J. Smith"
    ) -> AttendanceSubmission:
        if records is None:
            records = [("7", AttendanceStatus.PRESENT.value)]
        return AttendanceSubmission(
            class_number=class_number,
            date=date.fromisoformat(attendance_date),
            service_type=service_type,
            member_records=[{"member_id": m, "status": s} for m, s in records],
            leader_name=leader_name
        )

    return _make
