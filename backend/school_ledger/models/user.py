from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
import enum

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, enum_column, utcnow


class UserRole(str, enum.Enum):
    """User roles"""
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    LIBRARIAN = "LIBRARIAN"
    ACCOUNTANT = "ACCOUNTANT"
    WARDEN = "WARDEN"
    STUDENT = "STUDENT"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)

    role = Column(enum_column(UserRole), default=UserRole.STUDENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    last_login = Column(DateTime, nullable=True)

    student = relationship("Student", back_populates="user", uselist=False)

    def __repr__(self):
        return f"<User {self.email}>"
