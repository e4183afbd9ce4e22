"""
Library Service - catalogue and circulation

available_copies is DerivedState: it moves only through the guarded deltas
below (issue -1, return +1, RETURNED->LOST -1) or through a logged
LedgerAdjustment when an admin changes total_copies.

Loan transitions and their effect on available_copies:

    ISSUED   -> RETURNED  +1
    OVERDUE  -> RETURNED  +1
    LOST     -> RETURNED  +1   (book found)
    ISSUED   -> LOST       0
    OVERDUE  -> LOST       0
    RETURNED -> LOST      -1
    ISSUED   -> OVERDUE    0   (overdue sweep only)
"""

from datetime import date
from sqlalchemy import select, update, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional, Tuple

from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import (
    AssignmentNotFoundError,
    BookNotFoundError,
    ConflictError,
    DuplicateActiveLoanError,
    InsufficientAvailabilityError,
    InvalidStateTransitionError,
    StudentNotFoundError,
    ValidationError,
)
from school_ledger.core.logging_config import logger
from school_ledger.models import (
    ACTIVE_LOAN_STATUSES,
    AssignmentStatus,
    LedgerAdjustment,
    LibraryAssignment,
    LibraryBook,
    Student,
)
from school_ledger.schemas.library import AssignmentCreate, AssignmentUpdate, BookCreate, BookUpdate
from school_ledger.services.ledger_service import LedgerOperation, apply_delta, fetch_subject, ledger_service
from school_ledger.utils.dates import school_today
from school_ledger.utils.pagination import PaginationParams, paginate


LOAN_TRANSITIONS: Dict[Tuple[AssignmentStatus, AssignmentStatus], int] = {
    (AssignmentStatus.ISSUED, AssignmentStatus.RETURNED): +1,
    (AssignmentStatus.OVERDUE, AssignmentStatus.RETURNED): +1,
    (AssignmentStatus.LOST, AssignmentStatus.RETURNED): +1,
    (AssignmentStatus.ISSUED, AssignmentStatus.LOST): 0,
    (AssignmentStatus.OVERDUE, AssignmentStatus.LOST): 0,
    (AssignmentStatus.RETURNED, AssignmentStatus.LOST): -1,
}

# Net effect a closed loan has had on available_copies since it was issued
CLOSED_LOAN_NET_EFFECT: Dict[AssignmentStatus, int] = {
    AssignmentStatus.RETURNED: 0,
    AssignmentStatus.LOST: -1,
}


def transition_delta(current: AssignmentStatus, requested: AssignmentStatus) -> int:
    """Copies delta for a loan status change, or InvalidStateTransitionError"""
    try:
        return LOAN_TRANSITIONS[(current, requested)]
    except KeyError:
        raise InvalidStateTransitionError(
            f"Cannot change assignment status from {current.value} to {requested.value}",
            current=current.value,
            requested=requested.value,
        )


def _no_copies(book_id: str):
    def _error(current: Optional[int]) -> InsufficientAvailabilityError:
        return InsufficientAvailabilityError(
            "No copies of this book are available",
            details={"book_id": book_id, "available": current},
        )
    return _error


def _over_total(book_id: str):
    def _error(current: Optional[int]) -> InvalidStateTransitionError:
        error = InvalidStateTransitionError("Returning this copy would exceed the book's total copies")
        error.details.update({"book_id": book_id, "available": current})
        return error
    return _error


async def release_closed_loans(db: AsyncSession, student_id: str) -> Dict[str, int]:
    """
    Reverse the net copy effect of a student's closed loans ahead of deleting
    them; returns ``{book_id: delta}``. Runs inside the caller's transaction.
    """
    rows = await db.execute(
        select(LibraryAssignment.book_id, LibraryAssignment.status).where(
            LibraryAssignment.student_id == student_id,
            LibraryAssignment.status.in_(list(CLOSED_LOAN_NET_EFFECT)),
        )
    )
    deltas: Dict[str, int] = {}
    for book_id, status in rows.all():
        net = CLOSED_LOAN_NET_EFFECT[AssignmentStatus(status)]
        if net:
            deltas[book_id] = deltas.get(book_id, 0) - net

    for book_id, delta in deltas.items():
        await apply_delta(
            db, LibraryBook, book_id, "available_copies", delta, _over_total(book_id),
            minimum=0, maximum=LibraryBook.total_copies,
        )
    return deltas


# ==================== LEDGER OPERATIONS ====================

class IssueBook(LedgerOperation[Tuple[LibraryAssignment, LibraryBook]]):
    kind = "library_issue"
    # A racing duplicate loan trips uq_assignment_open_loan; the rerun check reports it
    retry_on_integrity_error = True

    def __init__(self, data: AssignmentCreate, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.data = data
        self.issue_date = data.issue_date or school_today()

    def subject_id(self) -> str:
        return self.data.book_id

    async def load(self, db: AsyncSession) -> None:
        self.book = await fetch_subject(db, LibraryBook, self.data.book_id, BookNotFoundError)
        self.student = await fetch_subject(db, Student, self.data.student_id, StudentNotFoundError, lock=False)

    async def check(self, db: AsyncSession) -> None:
        if self.data.due_date < self.issue_date:
            raise ValidationError("Due date cannot be before issue date", field="due_date")

        if self.book.available_copies <= 0:
            raise _no_copies(self.book.id)(self.book.available_copies)

        active = await db.scalar(
            select(LibraryAssignment.id).where(
                LibraryAssignment.book_id == self.book.id,
                LibraryAssignment.student_id == self.student.id,
                LibraryAssignment.status.in_(ACTIVE_LOAN_STATUSES),
            )
        )
        if active:
            raise DuplicateActiveLoanError(self.book.id, self.student.id)

    async def write(self, db: AsyncSession) -> Tuple[LibraryAssignment, LibraryBook]:
        assignment = LibraryAssignment(
            book_id=self.book.id,
            student_id=self.student.id,
            issue_date=self.issue_date,
            due_date=self.data.due_date,
            status=AssignmentStatus.ISSUED,
            remarks=self.data.remarks,
            issued_by=self.performed_by,
        )
        db.add(assignment)
        await db.flush()

        # The guard, not the check above, is what holds under concurrency
        book = await self.change(
            db, LibraryBook, self.book.id, "available_copies", -1,
            _no_copies(self.book.id),
            minimum=0, maximum=LibraryBook.total_copies,
        )
        return assignment, book


class UpdateAssignment(LedgerOperation[Tuple[LibraryAssignment, LibraryBook]]):
    kind = "library_transition"

    def __init__(self, assignment_id: str, data: AssignmentUpdate, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.assignment_id = assignment_id
        self.data = data

    def subject_id(self) -> str:
        return self.assignment_id

    async def load(self, db: AsyncSession) -> None:
        self.assignment = await fetch_subject(db, LibraryAssignment, self.assignment_id, AssignmentNotFoundError)
        self.book = await fetch_subject(db, LibraryBook, self.assignment.book_id, BookNotFoundError)

    async def check(self, db: AsyncSession) -> None:
        self.delta = 0
        self.is_transition = self.data.status is not None and self.data.status != self.assignment.status
        if self.is_transition:
            self.delta = transition_delta(self.assignment.status, self.data.status)

    async def write(self, db: AsyncSession) -> Tuple[LibraryAssignment, LibraryBook]:
        assignment = self.assignment
        if self.data.remarks is not None:
            assignment.remarks = self.data.remarks

        if self.is_transition:
            assignment.status = self.data.status
            if self.data.status == AssignmentStatus.RETURNED:
                assignment.return_date = self.data.return_date or school_today()
        elif self.data.return_date is not None:
            assignment.return_date = self.data.return_date

        await db.flush()

        book = self.book
        if self.delta:
            on_violation = _no_copies(book.id) if self.delta < 0 else _over_total(book.id)
            book = await self.change(
                db, LibraryBook, book.id, "available_copies", self.delta, on_violation,
                minimum=0, maximum=LibraryBook.total_copies,
            )
        return assignment, book


class DeleteAssignment(LedgerOperation[None]):
    """Open loans cannot be deleted; a closed loan's net effect is reversed"""
    kind = "library_delete_assignment"

    def __init__(self, assignment_id: str, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.assignment_id = assignment_id

    def subject_id(self) -> str:
        return self.assignment_id

    async def load(self, db: AsyncSession) -> None:
        self.assignment = await fetch_subject(db, LibraryAssignment, self.assignment_id, AssignmentNotFoundError)

    async def check(self, db: AsyncSession) -> None:
        if self.assignment.status in ACTIVE_LOAN_STATUSES:
            raise InvalidStateTransitionError(
                "Cannot delete an active assignment. Book must be returned first.",
                current=self.assignment.status.value,
            )

    async def write(self, db: AsyncSession) -> None:
        net = CLOSED_LOAN_NET_EFFECT[self.assignment.status]
        book_id = self.assignment.book_id
        await db.execute(delete(LibraryAssignment).where(LibraryAssignment.id == self.assignment.id))
        if net:
            await self.change(
                db, LibraryBook, book_id, "available_copies", -net, _over_total(book_id),
                minimum=0, maximum=LibraryBook.total_copies,
            )


class AdjustBookCopies(LedgerOperation[LibraryBook]):
    """Catalogue edit; a total_copies change moves available_copies with it"""
    kind = "library_adjust_copies"

    def __init__(self, book_id: str, data: BookUpdate, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.book_id = book_id
        self.data = data

    def subject_id(self) -> str:
        return self.book_id

    async def load(self, db: AsyncSession) -> None:
        self.book = await fetch_subject(db, LibraryBook, self.book_id, BookNotFoundError)

    async def check(self, db: AsyncSession) -> None:
        if self.data.isbn and self.data.isbn != self.book.isbn:
            clash = await db.scalar(select(LibraryBook.id).where(LibraryBook.isbn == self.data.isbn))
            if clash:
                raise ConflictError("A book with this ISBN already exists", details={"isbn": self.data.isbn})

    async def write(self, db: AsyncSession) -> LibraryBook:
        book = self.book
        for field in ("title", "author", "isbn", "category"):
            value = getattr(self.data, field)
            if value is not None:
                setattr(book, field, value)
        await db.flush()

        delta = 0
        if self.data.total_copies is not None:
            delta = self.data.total_copies - book.total_copies

        if delta:
            def _copies_out(current: Optional[int]) -> InsufficientAvailabilityError:
                return InsufficientAvailabilityError(
                    "Cannot remove copies that are currently issued",
                    details={"available": current, "requested": -delta},
                )

            book = await self.change(
                db, LibraryBook, book.id, "available_copies", delta, _copies_out,
                minimum=0,
                extra_values={"total_copies": LibraryBook.total_copies + delta},
            )
            db.add(LedgerAdjustment(
                subject_type=LibraryBook.__tablename__,
                subject_id=book.id,
                field="total_copies",
                delta=delta,
                reason=self.data.reason,
                performed_by=self.performed_by,
            ))
            await db.flush()
        return book


# ==================== SERVICE ====================

class LibraryService:
    """Service for library books and loans"""

    # ---------- Books ----------

    async def create_book(self, db: AsyncSession, data: BookCreate) -> LibraryBook:
        async def _work(session: AsyncSession) -> LibraryBook:
            if await session.scalar(select(LibraryBook.id).where(LibraryBook.isbn == data.isbn)):
                raise ConflictError("A book with this ISBN already exists", details={"isbn": data.isbn})
            book = LibraryBook(
                title=data.title,
                author=data.author,
                isbn=data.isbn,
                category=data.category,
                total_copies=data.total_copies,
                available_copies=data.total_copies,
            )
            session.add(book)
            await session.flush()
            return book

        book = await run_in_transaction(db, _work)
        logger.info(f"Added book {book.isbn} with {book.total_copies} copies")
        return book

    async def get_book(self, db: AsyncSession, book_id: str) -> LibraryBook:
        return await fetch_subject(db, LibraryBook, book_id, BookNotFoundError, lock=False)

    async def list_books(
        self,
        db: AsyncSession,
        params: PaginationParams,
        search: Optional[str] = None,
        category: Optional[str] = None,
        available_only: bool = False,
    ) -> dict:
        query = select(LibraryBook).order_by(LibraryBook.title)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(LibraryBook.title).like(pattern),
                func.lower(LibraryBook.author).like(pattern),
                func.lower(LibraryBook.isbn).like(pattern),
            ))
        if category:
            query = query.where(LibraryBook.category == category)
        if available_only:
            query = query.where(LibraryBook.available_copies > 0)
        return await paginate(db, query, params)

    async def update_book(
        self, db: AsyncSession, book_id: str, data: BookUpdate, performed_by: Optional[str] = None
    ) -> LibraryBook:
        return await ledger_service.apply(db, AdjustBookCopies(book_id, data, performed_by))

    async def delete_book(self, db: AsyncSession, book_id: str) -> None:
        """Blocked while any copy is on loan; closed loan history goes with the book"""
        async def _work(session: AsyncSession) -> None:
            book = await fetch_subject(session, LibraryBook, book_id, BookNotFoundError)
            active = await session.scalar(
                select(func.count()).select_from(LibraryAssignment).where(
                    LibraryAssignment.book_id == book.id,
                    LibraryAssignment.status.in_(ACTIVE_LOAN_STATUSES),
                )
            )
            if active:
                raise ConflictError(
                    "Cannot delete a book with active assignments",
                    details={"book_id": book.id, "active_loans": active},
                )
            await session.execute(delete(LibraryAssignment).where(LibraryAssignment.book_id == book.id))
            await session.execute(delete(LibraryBook).where(LibraryBook.id == book.id))

        await run_in_transaction(db, _work)
        logger.info(f"Deleted book {book_id}")

    # ---------- Assignments ----------

    async def issue_book(
        self, db: AsyncSession, data: AssignmentCreate, performed_by: Optional[str] = None
    ) -> Tuple[LibraryAssignment, LibraryBook]:
        return await ledger_service.apply(db, IssueBook(data, performed_by))

    async def update_assignment(
        self, db: AsyncSession, assignment_id: str, data: AssignmentUpdate, performed_by: Optional[str] = None
    ) -> Tuple[LibraryAssignment, LibraryBook]:
        return await ledger_service.apply(db, UpdateAssignment(assignment_id, data, performed_by))

    async def delete_assignment(self, db: AsyncSession, assignment_id: str, performed_by: Optional[str] = None) -> None:
        await ledger_service.apply(db, DeleteAssignment(assignment_id, performed_by))

    async def get_assignment(self, db: AsyncSession, assignment_id: str) -> LibraryAssignment:
        return await fetch_subject(db, LibraryAssignment, assignment_id, AssignmentNotFoundError, lock=False)

    async def list_assignments(
        self,
        db: AsyncSession,
        params: PaginationParams,
        status: Optional[AssignmentStatus] = None,
        student_id: Optional[str] = None,
        book_id: Optional[str] = None,
    ) -> dict:
        query = select(LibraryAssignment).order_by(LibraryAssignment.issue_date.desc(), LibraryAssignment.created_at.desc())
        if status is not None:
            query = query.where(LibraryAssignment.status == status)
        if student_id:
            query = query.where(LibraryAssignment.student_id == student_id)
        if book_id:
            query = query.where(LibraryAssignment.book_id == book_id)
        return await paginate(db, query, params)

    async def refresh_overdue(self, db: AsyncSession, today: Optional[date] = None) -> int:
        """Flag ISSUED loans past their due date as OVERDUE; returns how many changed"""
        cutoff = today or school_today()

        async def _work(session: AsyncSession) -> int:
            result = await session.execute(
                update(LibraryAssignment)
                .where(
                    LibraryAssignment.status == AssignmentStatus.ISSUED,
                    LibraryAssignment.due_date < cutoff,
                )
                .values(status=AssignmentStatus.OVERDUE)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

        flagged = await run_in_transaction(db, _work)
        logger.info(
            f"Overdue sweep flagged {flagged} loans",
            extra={"event_type": "ledger", "ledger_kind": "library_overdue_sweep", "flagged": flagged}
        )
        return flagged


library_service = LibraryService()
