from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, utcnow


class SchoolClass(Base):
    """A class section for one academic year, e.g. 10-A 2024-2025"""
    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("name", "section", "academic_year", name="uq_class_name_section_year"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(50), nullable=False)
    section = Column(String(20), nullable=False)
    academic_year = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    students = relationship("Student", back_populates="school_class")

    def __repr__(self):
        return f"<SchoolClass {self.name}-{self.section} {self.academic_year}>"


class Student(Base):
    """Student profile; login identity lives on the linked User"""
    __tablename__ = "students"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    user_id = Column(GUID, ForeignKey("users.id"), unique=True, nullable=False)
    admission_no = Column(String(50), unique=True, index=True, nullable=False)
    class_id = Column(GUID, ForeignKey("classes.id"), index=True, nullable=False)
    roll_no = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    parent_name = Column(String(255), nullable=True)
    parent_phone = Column(String(30), nullable=True)
    parent_email = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Many-to-one sides load eagerly so async code never lazy-loads them
    user = relationship("User", back_populates="student", lazy="selectin")
    school_class = relationship("SchoolClass", back_populates="students", lazy="selectin")

    def __repr__(self):
        return f"<Student {self.admission_no}>"
