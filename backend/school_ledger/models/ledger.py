from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Text

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, utcnow


class LedgerAdjustment(Base):
    """
    Administrative correction of a bounded field (book copies, room
    capacity). Keeps the field equal to the fold of its events.
    """
    __tablename__ = "ledger_adjustments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    subject_type = Column(String(50), index=True, nullable=False)  # table name of the subject
    subject_id = Column(GUID, index=True, nullable=False)
    field = Column(String(50), nullable=False)
    delta = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    performed_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<LedgerAdjustment {self.subject_type}:{self.subject_id} {self.field} {self.delta:+d}>"
