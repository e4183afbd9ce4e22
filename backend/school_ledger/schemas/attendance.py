from pydantic import BaseModel, Field
from typing import Optional, List, Union
from datetime import date, datetime

from school_ledger.models.attendance import AttendanceStatus

DateType = date
DayOrInstant = Union[date, datetime]


class AttendanceMark(BaseModel):
    """A date or any timestamp within the school day"""
    student_id: str = Field(..., min_length=1)
    date: DayOrInstant
    status: AttendanceStatus
    remarks: Optional[str] = Field(None, max_length=500)


class BulkAttendanceRecord(BaseModel):
    # Status kept as text so an invalid value fails its row, not the request
    student_id: str
    status: str
    remarks: Optional[str] = Field(None, max_length=500)


class BulkAttendanceRequest(BaseModel):
    date: DayOrInstant
    records: List[BulkAttendanceRecord] = Field(..., min_length=1)


class AttendanceResponse(BaseModel):
    id: str
    student_id: str
    date: DateType
    status: AttendanceStatus
    remarks: Optional[str] = None
    marked_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
