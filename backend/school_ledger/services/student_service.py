"""
Student Service - enrolment, removal and bulk import

Handles:
- Creating a student together with its login account
- Deleting a student (blocked while books or a hostel bed are held)
- Chunked CSV/Excel import with per-row error reporting
"""

from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Mapping, Optional, Tuple

from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import (
    ConflictError,
    MissingFieldsError,
    StudentNotFoundError,
    ClassNotFoundError,
)
from school_ledger.core.logging_config import logger
from school_ledger.core.security import get_password_hash
from school_ledger.core.types import generate_uuid
from school_ledger.models import (
    Attendance,
    Fee,
    FeeStatus,
    HostelAllocation,
    AllocationStatus,
    LibraryAssignment,
    ACTIVE_LOAN_STATUSES,
    SchoolClass,
    Student,
    User,
    UserRole,
)
from school_ledger.schemas.school import (
    StudentCreate,
    StudentImportRequest,
    StudentImportRow,
    REQUIRED_IMPORT_FIELDS,
)
from school_ledger.services.batch_service import BatchResult, BatchRunner, map_row
from school_ledger.services.class_service import class_service
from school_ledger.services.library_service import release_closed_loans
from school_ledger.services.ledger_service import fetch_subject
from school_ledger.utils.pagination import PaginationParams, paginate


# Column headers of the school's import template, used when no mapping is sent
DEFAULT_IMPORT_COLUMNS: Dict[str, str] = {
    "name": "Student Name",
    "email": "Email",
    "admission_no": "Admission No",
    "roll_no": "Roll No",
    "date_of_birth": "Date of Birth",
    "gender": "Gender",
    "parent_name": "Parent Name",
    "parent_phone": "Parent Phone",
    "parent_email": "Parent Email",
    "address": "Address",
    "class_name": "Class",
    "section": "Section",
}


async def _email_taken(db: AsyncSession, email: str) -> bool:
    return bool(await db.scalar(select(User.id).where(User.email == email.lower())))


async def _admission_taken(db: AsyncSession, admission_no: str) -> bool:
    return bool(await db.scalar(select(Student.id).where(Student.admission_no == admission_no)))


def _new_student_account(name: str, email: str, password: str) -> User:
    return User(
        id=generate_uuid(),
        email=email.lower(),
        name=name,
        hashed_password=get_password_hash(password),
        role=UserRole.STUDENT,
        is_active=True,
    )


class StudentImporter:
    """Row handler for ``BatchRunner``: validate, dedupe, upsert class, create"""

    def __init__(self, academic_year: str, mapping: Mapping[str, str]):
        self.academic_year = academic_year
        self.mapping = {**DEFAULT_IMPORT_COLUMNS, **mapping}
        self._class_ids: Dict[Tuple[str, str], str] = {}

    def reset(self) -> None:
        """Forget classes created in a rolled-back chunk"""
        self._class_ids.clear()

    async def _class_id(self, db: AsyncSession, name: str, section: str) -> str:
        key = (name, section)
        if key not in self._class_ids:
            school_class = await class_service.find_class(db, name, section, self.academic_year)
            if school_class is None:
                school_class = SchoolClass(
                    id=generate_uuid(), name=name, section=section, academic_year=self.academic_year
                )
                db.add(school_class)
                await db.flush()
                logger.info(f"Import created class {name}-{section} ({self.academic_year})")
            self._class_ids[key] = school_class.id
        return self._class_ids[key]

    async def __call__(self, db: AsyncSession, raw: Mapping, row_number: int) -> Student:
        mapped = map_row(raw, self.mapping)

        missing = [f for f in REQUIRED_IMPORT_FIELDS if mapped.get(f) is None]
        if missing:
            raise MissingFieldsError(missing)
        if isinstance(mapped.get("gender"), str):
            mapped["gender"] = mapped["gender"].upper()

        row = StudentImportRow.model_validate(mapped)

        # Earlier rows of this import are flushed, so these also catch in-file duplicates
        if await _admission_taken(db, row.admission_no):
            raise ConflictError(f"Admission number {row.admission_no} already exists")
        if await _email_taken(db, row.email):
            raise ConflictError(f"Email {row.email} already in use")

        class_id = await self._class_id(db, row.class_name, row.section)

        # Initial password is the admission number
        user = _new_student_account(row.name, row.email, row.admission_no)
        student = Student(
            user_id=user.id,
            admission_no=row.admission_no,
            class_id=class_id,
            roll_no=row.roll_no,
            date_of_birth=row.date_of_birth,
            gender=row.gender,
            parent_name=row.parent_name,
            parent_phone=row.parent_phone,
            parent_email=row.parent_email,
            address=row.address,
        )
        db.add_all([user, student])
        await db.flush()
        return student


class StudentService:
    """Service for student enrolment"""

    async def create_student(self, db: AsyncSession, data: StudentCreate) -> Student:
        async def _work(session: AsyncSession) -> Student:
            if await _email_taken(session, data.email):
                raise ConflictError("Email already in use", details={"email": data.email})
            if await _admission_taken(session, data.admission_no):
                raise ConflictError("Admission number already in use", details={"admission_no": data.admission_no})
            school_class = await fetch_subject(session, SchoolClass, data.class_id, ClassNotFoundError, lock=False)

            user = _new_student_account(data.name, data.email, data.password)
            student = Student(
                admission_no=data.admission_no,
                roll_no=data.roll_no,
                date_of_birth=data.date_of_birth,
                gender=data.gender,
                parent_name=data.parent_name,
                parent_phone=data.parent_phone,
                parent_email=data.parent_email,
                address=data.address,
            )
            student.user = user
            student.school_class = school_class
            session.add_all([user, student])
            await session.flush()
            return student

        student = await run_in_transaction(db, _work)
        logger.info(f"Created student {student.admission_no} ({student.user.email})")
        return student

    async def get_student(self, db: AsyncSession, student_id: str) -> Student:
        return await fetch_subject(db, Student, student_id, StudentNotFoundError, lock=False)

    async def list_students(
        self,
        db: AsyncSession,
        params: PaginationParams,
        class_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> dict:
        query = select(Student).join(User, Student.user_id == User.id).order_by(Student.admission_no)
        if class_id:
            query = query.where(Student.class_id == class_id)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(User.name).like(pattern),
                func.lower(User.email).like(pattern),
                func.lower(Student.admission_no).like(pattern),
            ))
        return await paginate(db, query, params)

    async def delete_student(self, db: AsyncSession, student_id: str) -> None:
        """
        Remove a student, its history and its login account.
        Blocked while the student holds a book, a hostel bed or a paid fee.
        Lost copies come back to the catalogue with the deleted loans.
        """
        async def _work(session: AsyncSession) -> Dict[str, int]:
            student = await fetch_subject(session, Student, student_id, StudentNotFoundError)

            active_loans = await session.scalar(
                select(func.count()).select_from(LibraryAssignment).where(
                    LibraryAssignment.student_id == student.id,
                    LibraryAssignment.status.in_(ACTIVE_LOAN_STATUSES),
                )
            )
            if active_loans:
                raise ConflictError(
                    "Cannot delete a student with books still issued",
                    details={"student_id": student.id, "active_loans": active_loans},
                )

            active_allocation = await session.scalar(
                select(HostelAllocation.id).where(
                    HostelAllocation.student_id == student.id,
                    HostelAllocation.status == AllocationStatus.ACTIVE,
                )
            )
            if active_allocation:
                raise ConflictError(
                    "Cannot delete a student with an active hostel allocation",
                    details={"student_id": student.id, "allocation_id": active_allocation},
                )

            paid_fees = await session.scalar(
                select(func.count()).select_from(Fee).where(
                    Fee.student_id == student.id,
                    Fee.status == FeeStatus.PAID,
                )
            )
            if paid_fees:
                raise ConflictError(
                    "Cannot delete a student with paid fee records",
                    details={"student_id": student.id, "paid_fees": paid_fees},
                )

            released = await release_closed_loans(session, student.id)

            user_id = student.user_id
            for model in (Attendance, Fee, LibraryAssignment, HostelAllocation):
                await session.execute(delete(model).where(model.student_id == student.id))
            await session.execute(delete(Student).where(Student.id == student.id))
            await session.execute(delete(User).where(User.id == user_id))
            return released

        released = await run_in_transaction(db, _work)
        for book_id, delta in released.items():
            logger.log_ledger_event("library_release_closed_loans", book_id, delta=delta, student_id=student_id)
        logger.info(f"Deleted student {student_id}")

    async def import_students(
        self,
        db: AsyncSession,
        request: StudentImportRequest,
        batch_size: Optional[int] = None,
    ) -> BatchResult:
        """
        Import rows in independently committed chunks.

        Returns ``{success_count, failure_count, errors: [{row, error}]}``
        with 1-based row numbers; a bad row never aborts the import.
        """
        importer = StudentImporter(request.academic_year, request.mapping)
        runner = BatchRunner("student_import", batch_size=batch_size)
        return await runner.run(db, request.rows, importer, on_rollback=importer.reset)


student_service = StudentService()
