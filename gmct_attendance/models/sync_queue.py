from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Index
import enum
from datetime import datetime

from gmct_attendance.core.database import Base


class SyncQueueKind(str, enum.Enum):
    """Payload shape carried by a queue item."""
    ATTENDANCE_SUBMISSION = "attendance-submission"


class SyncQueueItem(Base):
    """
    One pending attendance submission.

    Rows are immutable apart from ``synced``, which moves from False to True
    once and is never reverted.
    """

    __tablename__ = "sync_queue"
    # AUTOINCREMENT keeps ids unique for the lifetime of the store
    __table_args__ = (
        Index("ix_sync_queue_synced_enqueued_at", "synced", "enqueued_at"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(String(50), nullable=False, default=SyncQueueKind.ATTENDANCE_SUBMISSION.value)
    payload = Column(JSON, nullable=False)
    enqueued_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    synced = Column(Boolean, nullable=False, default=False, index=True)

    def __repr__(self) -> str:
        return f"<SyncQueueItem id={self.id} kind={self.kind} synced={self.synced}>"
