"""
Library API Endpoints

Books:
- GET/POST /library/books
- GET/PUT/DELETE /library/books/{id}

Assignments (loans):
- GET/POST /library/assignments
- POST /library/assignments/refresh-overdue
- GET/PUT/DELETE /library/assignments/{id}
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import get_db
from school_ledger.models.library import AssignmentStatus
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, require_capability
from school_ledger.schemas.library import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    BookCreate,
    BookResponse,
    BookUpdate,
)
from school_ledger.services.library_service import library_service
from school_ledger.utils.envelope import ok
from school_ledger.utils.pagination import PaginationParams, pagination_params, serialize_page

router = APIRouter(prefix="/library", tags=["Library"])


def _loan_payload(assignment, book) -> dict:
    return {
        "assignment": AssignmentResponse.model_validate(assignment),
        "book": BookResponse.model_validate(book),
    }


# ==================== BOOKS ====================

@router.get("/books")
async def list_books(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    available_only: bool = Query(False),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.LIBRARY_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await library_service.list_books(
        db, params, search=search, category=category, available_only=available_only
    )
    return ok(serialize_page(page, BookResponse), "Books retrieved successfully")


@router.post("/books", status_code=status.HTTP_201_CREATED)
async def create_book(
    data: BookCreate,
    current_user: User = Depends(require_capability(Capability.LIBRARY_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    book = await library_service.create_book(db, data)
    return ok(BookResponse.model_validate(book), "Book created successfully")


@router.get("/books/{book_id}")
async def get_book(
    book_id: str,
    current_user: User = Depends(require_capability(Capability.LIBRARY_READ)),
    db: AsyncSession = Depends(get_db)
):
    book = await library_service.get_book(db, book_id)
    return ok(BookResponse.model_validate(book), "Book retrieved successfully")


@router.put("/books/{book_id}")
async def update_book(
    book_id: str,
    data: BookUpdate,
    current_user: User = Depends(require_capability(Capability.LIBRARY_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    book = await library_service.update_book(db, book_id, data, performed_by=str(current_user.id))
    return ok(BookResponse.model_validate(book), "Book updated successfully")


@router.delete("/books/{book_id}")
async def delete_book(
    book_id: str,
    current_user: User = Depends(require_capability(Capability.LIBRARY_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    await library_service.delete_book(db, book_id)
    return ok(message="Book deleted successfully")


# ==================== ASSIGNMENTS ====================

@router.get("/assignments")
async def list_assignments(
    assignment_status: Optional[AssignmentStatus] = Query(None, alias="status"),
    student_id: Optional[str] = Query(None),
    book_id: Optional[str] = Query(None),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.LIBRARY_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await library_service.list_assignments(
        db, params, status=assignment_status, student_id=student_id, book_id=book_id
    )
    return ok(serialize_page(page, AssignmentResponse), "Assignments retrieved successfully")


@router.post("/assignments", status_code=status.HTTP_201_CREATED)
async def issue_book(
    data: AssignmentCreate,
    current_user: User = Depends(require_capability(Capability.LIBRARY_CIRCULATE)),
    db: AsyncSession = Depends(get_db)
):
    assignment, book = await library_service.issue_book(db, data, performed_by=str(current_user.id))
    return ok(_loan_payload(assignment, book), "Book issued successfully")


@router.post("/assignments/refresh-overdue")
async def refresh_overdue(
    current_user: User = Depends(require_capability(Capability.LIBRARY_CIRCULATE)),
    db: AsyncSession = Depends(get_db)
):
    flagged = await library_service.refresh_overdue(db)
    return ok({"flagged": flagged}, f"{flagged} assignments marked overdue")


@router.get("/assignments/{assignment_id}")
async def get_assignment(
    assignment_id: str,
    current_user: User = Depends(require_capability(Capability.LIBRARY_READ)),
    db: AsyncSession = Depends(get_db)
):
    assignment = await library_service.get_assignment(db, assignment_id)
    return ok(AssignmentResponse.model_validate(assignment), "Assignment retrieved successfully")


@router.put("/assignments/{assignment_id}")
async def update_assignment(
    assignment_id: str,
    data: AssignmentUpdate,
    current_user: User = Depends(require_capability(Capability.LIBRARY_CIRCULATE)),
    db: AsyncSession = Depends(get_db)
):
    """Return, mark lost, or edit remarks; copies move with the status change"""
    assignment, book = await library_service.update_assignment(
        db, assignment_id, data, performed_by=str(current_user.id)
    )
    return ok(_loan_payload(assignment, book), "Assignment updated successfully")


@router.delete("/assignments/{assignment_id}")
async def delete_assignment(
    assignment_id: str,
    current_user: User = Depends(require_capability(Capability.LIBRARY_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    await library_service.delete_assignment(db, assignment_id, performed_by=str(current_user.id))
    return ok(message="Assignment record deleted successfully")
