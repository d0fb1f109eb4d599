from pydantic import BaseModel, Field, validator
from datetime import date
from typing import Optional, List, Dict, Any
from enum import Enum


class ServiceType(str, Enum):
    SUNDAY = "sunday"
    BIBLE_STUDY = "bible-study"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    SICK = "sick"
    TRAVEL = "travel"


class MemberStatusRecord(BaseModel):
    member_id: str = Field(..., min_length=1)
    status: AttendanceStatus

    @validator("member_id", pre=True)
    def coerce_member_id(cls, v):
        # Roster ids arrive as ints or UUID strings depending on the table
        return str(v) if v is not None else v


class AttendanceSubmission(BaseModel):
    """One class/date/service attendance event, synced as a single unit."""

    class_number: int = Field(..., ge=1)
    date: date
    service_type: ServiceType
    member_records: List[MemberStatusRecord] = Field(default_factory=list)
    leader_name: Optional[str] = Field(None, max_length=255)

    def summary_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in AttendanceStatus}
        for record in self.member_records:
            counts[record.status.value] += 1
        return counts

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe body stored in the sync queue."""
        return self.model_dump(mode="json")

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AttendanceSubmission":
        return cls.model_validate(payload)


class AttendanceSummary(BaseModel):
    """Attendance summary row as stored by the remote ``attendance`` table."""

    id: str
    class_number: str
    attendance_date: date
    service_type: ServiceType
    class_leader_name: Optional[str] = None
    total_members_present: int = 0
    total_members_absent: int = 0
    total_members_sick: int = 0
    total_members_travel: int = 0
    total_visitors: int = 0

    @validator("id", "class_number", pre=True)
    def coerce_to_str(cls, v):
        return str(v) if v is not None else v


class Member(BaseModel):
    id: str
    name: str
    assigned_class: Optional[int] = None
    phone: Optional[str] = None
    member_number: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None

    @validator("id", "phone", "member_number", pre=True)
    def coerce_text_fields(cls, v):
        return str(v) if v is not None else v

    @classmethod
    def from_remote(cls, row: Dict[str, Any]) -> "Member":
        """Map a remote ``members`` row, which may carry either class column."""
        assigned_class = row.get("assigned_class")
        if assigned_class is None and row.get("class_number"):
            try:
                assigned_class = int(row["class_number"])
            except (TypeError, ValueError):
                assigned_class = None

        return cls(
            id=row["id"],
            name=row.get("name") or "",
            assigned_class=assigned_class,
            phone=row.get("phone") or row.get("phoneNumber"),
            member_number=row.get("member_number"),
            address=row.get("address"),
            city=row.get("city"),
            province=row.get("province"),
        )

    class Config:
        from_attributes = True
