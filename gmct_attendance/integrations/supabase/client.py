"""
Supabase (PostgREST) client for the remote attendance store.

Provides the remote submission endpoint used by the sync orchestrator and
the roster fetch used to populate the local member cache.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from gmct_attendance.core.exceptions import ConfigurationError, RemoteSubmissionError
from gmct_attendance.schemas.attendance import AttendanceStatus, AttendanceSubmission, AttendanceSummary, Member

logger = logging.getLogger(__name__)

ATTENDANCE_CONFLICT_KEY = "class_number,attendance_date,service_type"
MEMBER_ATTENDANCE_CONFLICT_KEY = "attendance_id,member_id"


class SupabaseClient:
    """Thin async client over the Supabase REST API."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 15.0):
        if not base_url:
            raise ConfigurationError("SUPABASE_URL is not configured")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._http_session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def open(self) -> None:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    'apikey': self.api_key,
                    'Authorization': f'Bearer {self.api_key}',
                    'User-Agent': 'GMCT-Attendance/1.0'
                }
            )

    async def close(self) -> None:
        if self._http_session:
            await self._http_session.close()
            self._http_session = None

    @property
    def session(self) -> Optional[aiohttp.ClientSession]:
        return self._http_session

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    async def _request(
        self,
        method: str,
        table: str,
        params: Optional[Dict[str, str]] = None,
        json: Any = None,
        prefer: Optional[str] = None
    ) -> Any:
        if not self._http_session:
            raise RuntimeError("Supabase client must be opened before use")

        headers = {'Content-Type': 'application/json'}
        if prefer:
            headers['Prefer'] = prefer

        try:
            async with self._http_session.request(
                method,
                self._table_url(table),
                params=params,
                json=json,
                headers=headers
            ) as response:
                if response.status >= 400:
                    error_text = await response.text()
                    logger.error(f"{method} {table} failed: Status {response.status}, Error: {error_text}")
                    raise RemoteSubmissionError.from_status(
                        response.status,
                        f"{method} {table} failed with status {response.status}",
                        details={'body': error_text}
                    )
                if response.status == 204:
                    return None
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    # Captive portals and proxies answer 200 with an HTML page
                    logger.error(f"{method} {table} returned a non-JSON body (status {response.status})")
                    raise RemoteSubmissionError(
                        f"{method} {table} returned an unreadable response",
                        status_code=response.status,
                        details={'content_type': response.content_type},
                        original_exception=e
                    ) from e

        except aiohttp.ClientError as e:
            logger.error(f"HTTP error during {method} {table}: {e}")
            raise RemoteSubmissionError(f"HTTP error: {e}", original_exception=e) from e
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout during {method} {table}")
            raise RemoteSubmissionError("Request timed out", original_exception=e) from e

    async def save_attendance(self, submission: AttendanceSubmission) -> AttendanceSummary:
        """
        Upsert one attendance submission.

        The summary row is keyed by (class_number, attendance_date,
        service_type) and member rows by (attendance_id, member_id), so
        re-sending the same submission overwrites instead of duplicating.

        Returns:
            The stored summary record

        Raises:
            RemoteSubmissionError: On transport failure or a rejected request
        """
        counts = submission.summary_counts()
        summary_row = {
            'class_number': str(submission.class_number),
            'attendance_date': submission.date.isoformat(),
            'service_type': submission.service_type.value,
            'class_leader_name': submission.leader_name,
            'total_members_present': counts[AttendanceStatus.PRESENT.value],
            'total_members_absent': counts[AttendanceStatus.ABSENT.value],
            'total_members_sick': counts[AttendanceStatus.SICK.value],
            'total_members_travel': counts[AttendanceStatus.TRAVEL.value],
            'total_visitors': 0,
        }

        data = await self._request(
            'POST',
            'attendance',
            params={'on_conflict': ATTENDANCE_CONFLICT_KEY},
            json=summary_row,
            prefer='resolution=merge-duplicates,return=representation'
        )
        if isinstance(data, list):
            data = data[0] if data else None
        if not data:
            raise RemoteSubmissionError("Attendance upsert returned no record", retryable=True)

        try:
            summary = AttendanceSummary.model_validate(data)
        except ValidationError as e:
            logger.error(f"Attendance upsert returned an unexpected record: {e}")
            raise RemoteSubmissionError(
                "Attendance upsert returned an unexpected record",
                original_exception=e
            ) from e

        member_rows = [
            {
                'attendance_id': summary.id,
                'member_id': record.member_id,
                'class_number': str(submission.class_number),
                'status': record.status.value,
            }
            for record in submission.member_records
        ]
        if member_rows:
            await self._request(
                'POST',
                'member_attendance',
                params={'on_conflict': MEMBER_ATTENDANCE_CONFLICT_KEY},
                json=member_rows,
                prefer='resolution=merge-duplicates,return=minimal'
            )

        logger.info(
            f"Saved attendance {summary.id} for class {summary.class_number} "
            f"{summary.attendance_date} ({summary.service_type.value})"
        )
        return summary

    async def get_class_members(self, class_number: int) -> List[Member]:
        """
        Fetch the roster for a class, ordered by name.

        Newer rows carry ``class_number`` as text; older rows only have the
        integer ``assigned_class`` column, which is queried when the first
        lookup finds nobody.
        """
        rows = await self._request(
            'GET',
            'members',
            params={
                'select': '*',
                'class_number': f'eq.{class_number}',
                'order': 'name.asc'
            }
        )
        if not rows:
            rows = await self._request(
                'GET',
                'members',
                params={
                    'select': '*',
                    'assigned_class': f'eq.{class_number}',
                    'order': 'name.asc'
                }
            )

        if rows is None:
            return []
        if not isinstance(rows, list):
            raise RemoteSubmissionError(f"Roster for class {class_number} is not a list of rows")

        try:
            return [Member.from_remote(row) for row in rows]
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            logger.error(f"Unexpected roster row for class {class_number}: {e}")
            raise RemoteSubmissionError(
                f"Roster for class {class_number} contains an unexpected row",
                original_exception=e
            ) from e
