import logging
from typing import Iterable, List

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError

from gmct_attendance.core.database import LocalDatabase
from gmct_attendance.core.exceptions import StorageError
from gmct_attendance.models.member import CachedMember
from gmct_attendance.schemas.attendance import Member

logger = logging.getLogger(__name__)


class MemberCacheRepository:
    """Local roster snapshot used to populate marking screens while offline."""

    def __init__(self, database: LocalDatabase):
        self.database = database

    @staticmethod
    def _to_row(member: Member) -> CachedMember:
        return CachedMember(
            id=member.id,
            name=member.name,
            assigned_class=member.assigned_class,
            phone=member.phone,
            member_number=member.member_number,
            address=member.address,
            city=member.city,
            province=member.province,
        )

    async def replace_all(self, members: Iterable[Member]) -> int:
        """Clear the whole cache and bulk insert ``members`` in one transaction."""
        rows = [self._to_row(m) for m in members]
        try:
            async with self.database.session() as session:
                await session.execute(delete(CachedMember))
                session.add_all(rows)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error caching members: {e}")
            raise StorageError("Failed to cache members", operation="replace_all",
                               original_exception=e) from e
        return len(rows)

    async def replace_class_roster(self, class_number: int, members: Iterable[Member]) -> int:
        """Replace the cached roster of one class, leaving other classes intact."""
        rows = [self._to_row(m) for m in members]
        for row in rows:
            row.assigned_class = class_number
        try:
            async with self.database.session() as session:
                await session.execute(
                    delete(CachedMember).where(CachedMember.assigned_class == class_number)
                )
                # A member moved between classes keeps a single row
                ids = [row.id for row in rows]
                if ids:
                    await session.execute(delete(CachedMember).where(CachedMember.id.in_(ids)))
                session.add_all(rows)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error caching members for class {class_number}: {e}")
            raise StorageError("Failed to cache members", operation="replace_class_roster",
                               original_exception=e) from e

        logger.debug(f"Cached {len(rows)} members for class {class_number}")
        return len(rows)

    async def get_cached_members(self, class_number: int) -> List[Member]:
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(CachedMember)
                    .where(CachedMember.assigned_class == class_number)
                    .order_by(CachedMember.name.asc())
                )
                return [Member.model_validate(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Error getting cached members: {e}")
            return []
