"""
Attendance Service - one mark per student per school day

Marking is an upsert: the date is collapsed to its school day, an existing
record for that (student, day) is updated in place, otherwise one is
inserted. The (student_id, date) unique key backs this at the store level;
an insert that loses a race on it is retried once and lands as an update.
"""

from datetime import date, datetime
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Tuple, Union

from school_ledger.core.exceptions import StudentNotFoundError, ValidationError
from school_ledger.models import Attendance, AttendanceStatus, Student
from school_ledger.schemas.attendance import AttendanceMark, BulkAttendanceRecord, BulkAttendanceRequest
from school_ledger.services.batch_service import BatchResult, BatchRunner
from school_ledger.services.ledger_service import LedgerOperation, fetch_subject, ledger_service
from school_ledger.utils.dates import to_school_date
from school_ledger.utils.pagination import PaginationParams, paginate


def parse_status(value: Union[str, AttendanceStatus]) -> AttendanceStatus:
    if isinstance(value, AttendanceStatus):
        return value
    try:
        return AttendanceStatus(str(value).strip().upper())
    except ValueError:
        allowed = ", ".join(s.value for s in AttendanceStatus)
        raise ValidationError(f"Invalid attendance status {value!r}; expected one of {allowed}", field="status")


async def upsert_attendance(
    db: AsyncSession,
    student_id: str,
    day: date,
    status: AttendanceStatus,
    remarks: Optional[str] = None,
    marked_by: Optional[str] = None,
) -> Tuple[Attendance, bool]:
    """Write the (student, day) record; returns (record, created). Does not commit."""
    existing = (await db.execute(
        select(Attendance)
        .where(Attendance.student_id == student_id, Attendance.date == day)
        .execution_options(populate_existing=True)
    )).scalar_one_or_none()

    if existing is not None:
        existing.status = status
        if remarks is not None:
            existing.remarks = remarks
        existing.marked_by = marked_by or existing.marked_by
        await db.flush()
        return existing, False

    record = Attendance(
        student_id=student_id,
        date=day,
        status=status,
        remarks=remarks,
        marked_by=marked_by,
    )
    db.add(record)
    await db.flush()
    return record, True


class MarkAttendance(LedgerOperation[Tuple[Attendance, bool]]):
    kind = "attendance_mark"
    retry_on_integrity_error = True

    def __init__(self, data: AttendanceMark, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.data = data
        self.day = to_school_date(data.date)

    def subject_id(self) -> str:
        return self.data.student_id

    async def load(self, db: AsyncSession) -> None:
        await fetch_subject(db, Student, self.data.student_id, StudentNotFoundError, lock=False)

    async def write(self, db: AsyncSession) -> Tuple[Attendance, bool]:
        return await upsert_attendance(
            db,
            self.data.student_id,
            self.day,
            self.data.status,
            remarks=self.data.remarks,
            marked_by=self.performed_by,
        )


class AttendanceService:

    async def mark(
        self,
        db: AsyncSession,
        data: AttendanceMark,
        performed_by: Optional[str] = None,
    ) -> Tuple[Attendance, bool]:
        return await ledger_service.apply(db, MarkAttendance(data, performed_by))

    async def mark_bulk(
        self,
        db: AsyncSession,
        data: BulkAttendanceRequest,
        performed_by: Optional[str] = None,
    ) -> BatchResult:
        """Upsert every record for one day; bad records are reported per row"""
        day = to_school_date(data.date)

        async def _mark(session: AsyncSession, record: BulkAttendanceRecord, row_number: int) -> None:
            status = parse_status(record.status)
            await fetch_subject(session, Student, record.student_id, StudentNotFoundError, lock=False)
            await upsert_attendance(session, record.student_id, day, status, record.remarks, performed_by)

        runner = BatchRunner("attendance_bulk")
        return await runner.run(db, data.records, _mark)

    async def list_attendance(
        self,
        db: AsyncSession,
        params: PaginationParams,
        student_id: Optional[str] = None,
        class_id: Optional[str] = None,
        on: Optional[Union[date, datetime]] = None,
        status: Optional[AttendanceStatus] = None,
    ) -> dict:
        query = select(Attendance).order_by(Attendance.date.desc(), Attendance.student_id)
        if student_id:
            query = query.where(Attendance.student_id == student_id)
        if class_id:
            query = query.join(Student, Attendance.student_id == Student.id).where(Student.class_id == class_id)
        if on is not None:
            query = query.where(Attendance.date == to_school_date(on))
        if status is not None:
            query = query.where(Attendance.status == status)
        return await paginate(db, query, params)


attendance_service = AttendanceService()
