from sqlalchemy import Column, Date, DateTime, ForeignKey, String, UniqueConstraint
import enum

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, enum_column, utcnow


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"


class Attendance(Base):
    """One attendance mark per student per school day"""
    __tablename__ = "attendance"
    __table_args__ = (
        UniqueConstraint("student_id", "date", name="uq_attendance_student_date"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    status = Column(enum_column(AttendanceStatus), nullable=False)
    remarks = Column(String(500), nullable=True)
    marked_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Attendance {self.student_id} {self.date} {self.status}>"
