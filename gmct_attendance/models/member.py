from sqlalchemy import Column, Integer, String

from gmct_attendance.core.database import Base


class CachedMember(Base):
    """Read-side roster snapshot; the remote ``members`` table is authoritative."""

    __tablename__ = "members"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    assigned_class = Column(Integer, nullable=True, index=True)

    # Contact details
    phone = Column(String(50), nullable=True)
    member_number = Column(String(50), nullable=True)
    address = Column(String(500), nullable=True)
    city = Column(String(100), nullable=True)
    province = Column(String(100), nullable=True)
