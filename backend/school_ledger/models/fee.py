from sqlalchemy import Column, String, Numeric, Date, DateTime, ForeignKey, Text
import enum

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, enum_column, utcnow


class FeeStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class Fee(Base):
    __tablename__ = "fees"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    student_id = Column(GUID, ForeignKey("students.id"), index=True, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(String(50), nullable=False)  # TUITION, HOSTEL, TRANSPORT, ...
    status = Column(enum_column(FeeStatus), default=FeeStatus.PENDING, index=True, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    remarks = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Fee {self.student_id} {self.amount} {self.status}>"
