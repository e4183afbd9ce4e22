from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, CheckConstraint, Index, text
import enum

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, enum_column, utcnow


class RoomType(str, enum.Enum):
    SINGLE = "SINGLE"
    DOUBLE = "DOUBLE"
    TRIPLE = "TRIPLE"
    QUAD = "QUAD"


ROOM_TYPE_MAX_CAPACITY = {
    RoomType.SINGLE: 1,
    RoomType.DOUBLE: 2,
    RoomType.TRIPLE: 3,
    RoomType.QUAD: 4,
}


class AllocationStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    VACATED = "VACATED"


class HostelRoom(Base):
    __tablename__ = "hostel_rooms"
    __table_args__ = (
        CheckConstraint("occupied >= 0", name="ck_room_occupied_nonnegative"),
        CheckConstraint("occupied <= capacity", name="ck_room_occupied_le_capacity"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    number = Column(String(20), unique=True, index=True, nullable=False)
    type = Column(enum_column(RoomType), nullable=False)
    capacity = Column(Integer, nullable=False)
    occupied = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<HostelRoom {self.number} {self.occupied}/{self.capacity}>"


class HostelAllocation(Base):
    """A student's bed in a room"""
    __tablename__ = "hostel_allocations"
    __table_args__ = (
        # At most one ACTIVE bed per student
        Index(
            "uq_allocation_active_student", "student_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    room_id = Column(GUID, ForeignKey("hostel_rooms.id"), index=True, nullable=False)
    student_id = Column(GUID, ForeignKey("students.id"), index=True, nullable=False)
    status = Column(enum_column(AllocationStatus), default=AllocationStatus.ACTIVE, nullable=False)
    allocated_on = Column(Date, nullable=False)
    vacated_on = Column(Date, nullable=True)
    allocated_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<HostelAllocation {self.student_id} in {self.room_id} {self.status}>"
