from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, Text, CheckConstraint, Index, text
import enum

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, enum_column, utcnow


class AssignmentStatus(str, enum.Enum):
    ISSUED = "ISSUED"
    RETURNED = "RETURNED"
    OVERDUE = "OVERDUE"
    LOST = "LOST"


# Loans still holding a copy
ACTIVE_LOAN_STATUSES = (AssignmentStatus.ISSUED, AssignmentStatus.OVERDUE)


class LibraryBook(Base):
    __tablename__ = "library_books"
    __table_args__ = (
        CheckConstraint("available_copies >= 0", name="ck_book_available_nonnegative"),
        CheckConstraint("available_copies <= total_copies", name="ck_book_available_le_total"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    title = Column(String(255), nullable=False)
    author = Column(String(255), nullable=False)
    isbn = Column(String(32), unique=True, index=True, nullable=False)
    category = Column(String(100), nullable=False)
    total_copies = Column(Integer, nullable=False)
    available_copies = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<LibraryBook {self.isbn} {self.available_copies}/{self.total_copies}>"


class LibraryAssignment(Base):
    """A loan of one copy of a book to a student"""
    __tablename__ = "library_assignments"
    __table_args__ = (
        # At most one open loan of a book per student
        Index(
            "uq_assignment_open_loan", "book_id", "student_id",
            unique=True,
            sqlite_where=text("status IN ('ISSUED', 'OVERDUE')"),
            postgresql_where=text("status IN ('ISSUED', 'OVERDUE')"),
        ),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    book_id = Column(GUID, ForeignKey("library_books.id"), index=True, nullable=False)
    student_id = Column(GUID, ForeignKey("students.id"), index=True, nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    status = Column(enum_column(AssignmentStatus), default=AssignmentStatus.ISSUED, index=True, nullable=False)
    remarks = Column(Text, nullable=True)
    issued_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_LOAN_STATUSES

    def __repr__(self):
        return f"<LibraryAssignment {self.book_id} -> {self.student_id} {self.status}>"
