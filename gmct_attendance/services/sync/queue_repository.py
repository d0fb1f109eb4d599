"""
Sync Queue Repository

Durable queue of attendance submissions waiting to reach the remote store.
Write failures propagate so no attendance is dropped silently; read failures
are logged and degrade to "nothing available this cycle".
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy import select, update, delete, func, and_
from sqlalchemy.exc import SQLAlchemyError

from gmct_attendance.core.database import LocalDatabase
from gmct_attendance.core.exceptions import StorageError
from gmct_attendance.models.sync_queue import SyncQueueItem, SyncQueueKind
from gmct_attendance.schemas.attendance import AttendanceSubmission

logger = logging.getLogger(__name__)


class SyncQueueRepository:
    """Queue operations over the ``sync_queue`` table."""

    def __init__(self, database: LocalDatabase, clock: Callable[[], datetime] = datetime.utcnow):
        self.database = database
        self.clock = clock

    async def enqueue(self, submission: AttendanceSubmission) -> int:
        """
        Persist a new pending submission.

        Returns:
            The store-assigned item id

        Raises:
            StorageError: When the insert could not be committed
        """
        item = SyncQueueItem(
            kind=SyncQueueKind.ATTENDANCE_SUBMISSION.value,
            payload=submission.to_payload(),
            enqueued_at=self.clock(),
            synced=False
        )
        try:
            async with self.database.session() as session:
                session.add(item)
                await session.commit()
                await session.refresh(item)
        except SQLAlchemyError as e:
            logger.error(f"Error adding to sync queue: {e}")
            raise StorageError("Failed to queue attendance for sync", operation="enqueue",
                               original_exception=e) from e

        logger.info(
            f"Queued attendance for class {submission.class_number} "
            f"{submission.date} ({submission.service_type.value}) as item {item.id}"
        )
        return item.id

    async def list_pending(self) -> List[SyncQueueItem]:
        """Unsynced items, oldest first."""
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(SyncQueueItem)
                    .where(SyncQueueItem.synced.is_(False))
                    .order_by(SyncQueueItem.id.asc())
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting pending sync items: {e}")
            return []

    async def count_pending(self) -> int:
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(func.count(SyncQueueItem.id)).where(SyncQueueItem.synced.is_(False))
                )
                return int(result.scalar_one())
        except SQLAlchemyError as e:
            logger.error(f"Error counting pending sync items: {e}")
            return 0

    async def get(self, item_id: int) -> Optional[SyncQueueItem]:
        try:
            async with self.database.session() as session:
                return await session.get(SyncQueueItem, item_id)
        except SQLAlchemyError as e:
            logger.error(f"Error loading sync item {item_id}: {e}")
            return None

    async def list_recently_synced(self, limit: int = 20) -> List[SyncQueueItem]:
        """Synced items still within retention, newest first."""
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(SyncQueueItem)
                    .where(SyncQueueItem.synced.is_(True))
                    .order_by(SyncQueueItem.id.desc())
                    .limit(limit)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(f"Error getting synced items: {e}")
            return []

    async def mark_synced(self, item_id: int) -> bool:
        """
        Flag an item as synced.

        Idempotent: returns False when the item was already synced or does not
        exist, True when this call flipped the flag.
        """
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    update(SyncQueueItem)
                    .where(and_(SyncQueueItem.id == item_id, SyncQueueItem.synced.is_(False)))
                    .values(synced=True)
                )
                await session.commit()
                return result.rowcount > 0
        except SQLAlchemyError as e:
            logger.error(f"Error marking item {item_id} as synced: {e}")
            return False

    async def purge_synced_older_than(self, retention: timedelta) -> int:
        """
        Delete synced items enqueued before ``now - retention``.

        Pending items are never deleted, whatever their age.
        """
        cutoff = self.clock() - retention
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    delete(SyncQueueItem).where(
                        and_(
                            SyncQueueItem.synced.is_(True),
                            SyncQueueItem.enqueued_at < cutoff
                        )
                    )
                )
                await session.commit()
                purged = result.rowcount or 0
        except SQLAlchemyError as e:
            logger.error(f"Error clearing old synced items: {e}")
            return 0

        if purged:
            logger.info(f"Purged {purged} synced items enqueued before {cutoff.isoformat()}")
        return purged
