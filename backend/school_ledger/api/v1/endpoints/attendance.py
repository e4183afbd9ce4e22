from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import get_db
from school_ledger.models.attendance import AttendanceStatus
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, require_capability
from school_ledger.schemas.attendance import AttendanceMark, AttendanceResponse, BulkAttendanceRequest
from school_ledger.services.attendance_service import attendance_service
from school_ledger.utils.envelope import ok
from school_ledger.utils.pagination import PaginationParams, pagination_params, serialize_page

router = APIRouter(prefix="/attendance", tags=["Attendance"])


@router.get("")
async def list_attendance(
    student_id: Optional[str] = Query(None),
    class_id: Optional[str] = Query(None),
    on: Optional[date] = Query(None, alias="date"),
    attendance_status: Optional[AttendanceStatus] = Query(None, alias="status"),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.ATTENDANCE_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await attendance_service.list_attendance(
        db, params, student_id=student_id, class_id=class_id, on=on, status=attendance_status
    )
    return ok(serialize_page(page, AttendanceResponse), "Attendance records retrieved successfully")


@router.post("")
async def mark_attendance(
    data: AttendanceMark,
    current_user: User = Depends(require_capability(Capability.ATTENDANCE_MARK)),
    db: AsyncSession = Depends(get_db)
):
    """Upsert: a second mark for the same student and day replaces the status"""
    record, created = await attendance_service.mark(db, data, performed_by=str(current_user.id))
    message = "Attendance marked successfully" if created else "Attendance updated successfully"
    return ok(AttendanceResponse.model_validate(record), message)


@router.post("/bulk")
async def mark_bulk_attendance(
    data: BulkAttendanceRequest,
    current_user: User = Depends(require_capability(Capability.ATTENDANCE_MARK)),
    db: AsyncSession = Depends(get_db)
):
    result = await attendance_service.mark_bulk(db, data, performed_by=str(current_user.id))
    return ok(
        result.to_dict(),
        f"Attendance marked for {result.success_count} students, {result.failure_count} failed",
    )
