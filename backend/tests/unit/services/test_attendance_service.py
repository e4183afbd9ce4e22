"""
Unit Tests for Attendance Service
"""
import pytest
from datetime import date, datetime
from sqlalchemy import select, func

from school_ledger.core.exceptions import StudentNotFoundError, ValidationError
from school_ledger.models import Attendance, AttendanceStatus
from school_ledger.schemas.attendance import AttendanceMark, BulkAttendanceRequest
from school_ledger.services.attendance_service import attendance_service, parse_status
from school_ledger.utils.pagination import PaginationParams


async def count_records(db) -> int:
    return await db.scalar(select(func.count()).select_from(Attendance))


class TestParseStatus:

    def test_case_insensitive(self):
        assert parse_status(" present ") == AttendanceStatus.PRESENT

    def test_invalid(self):
        with pytest.raises(ValidationError):
            parse_status("HOLIDAY")


class TestMarkAttendance:

    @pytest.mark.asyncio
    async def test_second_mark_replaces_the_first(self, db_session, student):
        first, created = await attendance_service.mark(
            db_session, AttendanceMark(student_id=student.id, date=date(2024, 3, 15), status=AttendanceStatus.PRESENT)
        )
        assert created is True

        second, created = await attendance_service.mark(
            db_session, AttendanceMark(student_id=student.id, date=date(2024, 3, 15), status=AttendanceStatus.ABSENT)
        )

        assert created is False
        assert second.id == first.id
        assert second.status == AttendanceStatus.ABSENT
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_same_mark_twice_is_idempotent(self, db_session, student):
        mark = AttendanceMark(student_id=student.id, date=date(2024, 3, 15), status=AttendanceStatus.LATE)

        await attendance_service.mark(db_session, mark)
        record, _ = await attendance_service.mark(db_session, mark)

        assert record.status == AttendanceStatus.LATE
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_timestamps_collapse_to_the_day(self, db_session, student):
        await attendance_service.mark(
            db_session,
            AttendanceMark(student_id=student.id, date=datetime(2024, 3, 15, 0, 0, 0), status=AttendanceStatus.PRESENT),
        )
        record, created = await attendance_service.mark(
            db_session,
            AttendanceMark(student_id=student.id, date=datetime(2024, 3, 15, 23, 59, 59, 999000), status=AttendanceStatus.ABSENT),
        )

        assert created is False
        assert record.date == date(2024, 3, 15)
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_unknown_student(self, db_session):
        with pytest.raises(StudentNotFoundError):
            await attendance_service.mark(
                db_session, AttendanceMark(student_id="missing", date=date(2024, 3, 15), status=AttendanceStatus.PRESENT)
            )


class TestBulkAttendance:

    @pytest.mark.asyncio
    async def test_bad_records_reported_per_row(self, db_session, make_student):
        first, second = await make_student(), await make_student()
        request = BulkAttendanceRequest(
            date="2024-03-15",
            records=[
                {"student_id": first.id, "status": "PRESENT"},
                {"student_id": "missing", "status": "PRESENT"},
                {"student_id": second.id, "status": "SICK"},
            ],
        )

        result = await attendance_service.mark_bulk(db_session, request, performed_by="teacher-1")

        assert result.success_count == 1
        assert result.failure_count == 2
        assert [e["row"] for e in result.to_dict()["errors"]] == [2, 3]
        assert await count_records(db_session) == 1

    @pytest.mark.asyncio
    async def test_bulk_upserts(self, db_session, student):
        await attendance_service.mark(
            db_session, AttendanceMark(student_id=student.id, date=date(2024, 3, 15), status=AttendanceStatus.PRESENT)
        )

        result = await attendance_service.mark_bulk(
            db_session,
            BulkAttendanceRequest(date="2024-03-15", records=[{"student_id": student.id, "status": "absent"}]),
        )

        page = await attendance_service.list_attendance(db_session, PaginationParams(page=1, limit=10), on=date(2024, 3, 15))
        assert result.success_count == 1
        assert page["pagination"]["total"] == 1
        assert page["items"][0].status == AttendanceStatus.ABSENT
