"""
Student API Endpoints

Endpoints:
- GET /students - List students (filter by class, search name/email/admission no)
- POST /students - Create a student and its login account
- POST /students/import - Bulk import from mapped spreadsheet rows
- GET /students/{id} - Student detail
- DELETE /students/{id} - Remove a student
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import get_db
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, require_capability
from school_ledger.schemas.school import StudentCreate, StudentImportRequest, StudentResponse
from school_ledger.services.student_service import student_service
from school_ledger.utils.envelope import ok
from school_ledger.utils.pagination import PaginationParams, pagination_params, serialize_page

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("")
async def list_students(
    class_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.STUDENTS_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await student_service.list_students(db, params, class_id=class_id, search=search)
    return ok(serialize_page(page, StudentResponse), "Students retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_student(
    data: StudentCreate,
    current_user: User = Depends(require_capability(Capability.STUDENTS_WRITE)),
    db: AsyncSession = Depends(get_db)
):
    student = await student_service.create_student(db, data)
    return ok(StudentResponse.model_validate(student), "Student created successfully")


@router.post("/import")
async def import_students(
    data: StudentImportRequest,
    current_user: User = Depends(require_capability(Capability.STUDENTS_IMPORT)),
    db: AsyncSession = Depends(get_db)
):
    """
    Rows are committed in chunks; failed rows are listed with their 1-based
    row number and never abort the rest of the import.
    """
    result = await student_service.import_students(db, data)
    return ok(
        result.to_dict(),
        f"Imported {result.success_count} students, {result.failure_count} failed",
    )


@router.get("/{student_id}")
async def get_student(
    student_id: str,
    current_user: User = Depends(require_capability(Capability.STUDENTS_READ)),
    db: AsyncSession = Depends(get_db)
):
    student = await student_service.get_student(db, student_id)
    return ok(StudentResponse.model_validate(student), "Student retrieved successfully")


@router.delete("/{student_id}")
async def delete_student(
    student_id: str,
    current_user: User = Depends(require_capability(Capability.STUDENTS_WRITE)),
    db: AsyncSession = Depends(get_db)
):
    await student_service.delete_student(db, student_id)
    return ok(message="Student deleted successfully")
