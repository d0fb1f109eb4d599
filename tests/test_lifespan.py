"""
End-to-end tests for the application lifespan with a mocked Supabase backend.
"""

import asyncio
import re

import pytest
from aioresponses import CallbackResult, aioresponses

from gmct_attendance.container import build_container
from gmct_attendance.core.config import Settings
from gmct_attendance.core.database import LocalDatabase
from gmct_attendance.main import application_lifespan
from gmct_attendance.services.attendance_service import SubmissionOutcome
from gmct_attendance.services.sync.queue_repository import SyncQueueRepository

ATTENDANCE_URL = re.compile(r"^https://test\.supabase\.co/rest/v1/attendance\?.*$")
MEMBER_ATTENDANCE_URL = re.compile(r"^https://test\.supabase\.co/rest/v1/member_attendance\?.*$")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        LOCAL_DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
        SUPABASE_URL="https://test.supabase.co",
        SUPABASE_ANON_KEY="anon",
        SYNC_INTERVAL_SECONDS=60,
    )


def mock_remote(m, repeat=True):
    m.post(ATTENDANCE_URL, repeat=repeat, status=201, payload=[{
        "id": "att-1",
        "class_number": "3",
        "attendance_date": "2024-03-10",
        "service_type": "sunday",
        "class_leader_name": "J. Smith",
        "total_members_present": 1,
        "total_members_absent": 0,
    }])
    m.post(MEMBER_ATTENDANCE_URL, repeat=repeat, status=201, body="")


class TestApplicationLifespan:

    @pytest.mark.asyncio
    async def test_build_container_wires_settings(self, settings):
        container = build_container(settings)

        assert container.orchestrator.retention.days == 7
        assert container.task_manager.interval_seconds == 60
        assert container.task_manager.monitor is None
        assert container.remote.base_url == "https://test.supabase.co"
        await container.database.dispose()

    @pytest.mark.asyncio
    async def test_startup_drains_leftover_queue(self, settings, make_submission):
        # Items left behind by a previous session
        database = LocalDatabase(settings.LOCAL_DATABASE_URL)
        await database.init_db()
        repo = SyncQueueRepository(database)
        item_id = await repo.enqueue(make_submission())
        await database.dispose()

        with aioresponses() as m:
            mock_remote(m)
            async with application_lifespan(settings, initially_online=True) as container:
                item = await container.queue_repo.get(item_id)
                assert item.synced is True
                assert container.orchestrator.pending_count == 0

    @pytest.mark.asyncio
    async def test_offline_submission_syncs_on_reconnect(self, settings, make_submission):
        with aioresponses() as m:
            mock_remote(m)
            async with application_lifespan(settings) as container:
                result = await container.attendance_service.submit(make_submission())
                assert result.outcome == SubmissionOutcome.QUEUED
                assert container.orchestrator.status().pending_count == 1

                container.connectivity.went_online()
                await container.orchestrator.wait_idle()

                assert (await container.queue_repo.get(result.queue_item_id)).synced is True
                assert container.orchestrator.status().pending_count == 0

    @pytest.mark.asyncio
    async def test_pending_items_survive_shutdown(self, settings, make_submission):
        async with application_lifespan(settings) as container:
            await container.attendance_service.submit(make_submission())

        assert container.task_manager.is_running is False

        database = LocalDatabase(settings.LOCAL_DATABASE_URL)
        repo = SyncQueueRepository(database)
        assert await repo.count_pending() == 1
        await database.dispose()

    @pytest.mark.asyncio
    async def test_shutdown_lets_timer_drain_finish(self, tmp_path, make_submission):
        settings = Settings(
            LOCAL_DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'app.db'}",
            SUPABASE_URL="https://test.supabase.co",
            SUPABASE_ANON_KEY="anon",
            SYNC_INTERVAL_SECONDS=0.05,
        )
        entered = asyncio.Event()
        gate = asyncio.Event()
        posted = []

        async def slow_upsert(url, **kwargs):
            posted.append(kwargs["json"]["class_number"])
            entered.set()
            await gate.wait()
            return CallbackResult(status=201, payload=[{
                "id": f"att-{kwargs['json']['class_number']}",
                "class_number": kwargs["json"]["class_number"],
                "attendance_date": "2024-03-10",
                "service_type": "sunday",
            }])

        with aioresponses() as m:
            m.post(ATTENDANCE_URL, repeat=True, callback=slow_upsert)
            m.post(MEMBER_ATTENDANCE_URL, repeat=True, status=201, body="")

            async with application_lifespan(settings) as container:
                for n in (1, 2, 3):
                    await container.queue_repo.enqueue(make_submission(class_number=n))
                # Only the timer may start the pass
                container.orchestrator.detach()
                container.connectivity.set_online(True)
                await asyncio.wait_for(entered.wait(), timeout=2)
                asyncio.get_running_loop().call_later(0.05, gate.set)

        assert posted == ["1", "2", "3"]

        database = LocalDatabase(settings.LOCAL_DATABASE_URL)
        repo = SyncQueueRepository(database)
        assert await repo.count_pending() == 0
        await database.dispose()

    @pytest.mark.asyncio
    async def test_unreadable_remote_reply_queues_submission(self, settings, make_submission):
        with aioresponses() as m:
            m.post(
                ATTENDANCE_URL,
                status=200,
                body="<html><body>Accept the terms to continue</body></html>",
                content_type="text/html"
            )
            async with application_lifespan(settings, initially_online=True) as container:
                result = await container.attendance_service.submit(make_submission())

                assert result.outcome == SubmissionOutcome.QUEUED
                assert container.orchestrator.status().pending_count == 1

        database = LocalDatabase(settings.LOCAL_DATABASE_URL)
        repo = SyncQueueRepository(database)
        assert [item.id for item in await repo.list_pending()] == [result.queue_item_id]
        await database.dispose()
