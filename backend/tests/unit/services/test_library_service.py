"""
Unit Tests for Library Service (catalogue and circulation)
"""
import asyncio
import pytest
from datetime import timedelta
from sqlalchemy import select, func

from school_ledger.core.exceptions import (
    ConflictError,
    DuplicateActiveLoanError,
    InsufficientAvailabilityError,
    InvalidStateTransitionError,
    ValidationError,
)
from school_ledger.models import AssignmentStatus, LedgerAdjustment, LibraryAssignment
from school_ledger.schemas.library import AssignmentCreate, AssignmentUpdate, BookUpdate
from school_ledger.services.library_service import LOAN_TRANSITIONS, library_service, transition_delta
from school_ledger.utils.dates import school_today


def due_in(days: int = 14):
    return school_today() + timedelta(days=days)


def loan(book, student, **kwargs) -> AssignmentCreate:
    return AssignmentCreate(book_id=book.id, student_id=student.id, due_date=kwargs.pop("due_date", due_in()), **kwargs)


async def issue(db, book, student):
    assignment, updated = await library_service.issue_book(db, loan(book, student))
    return assignment, updated


async def set_status(db, assignment_id, status: AssignmentStatus):
    return await library_service.update_assignment(db, assignment_id, AssignmentUpdate(status=status))


class TestTransitionTable:

    def test_return_restores_a_copy(self):
        assert transition_delta(AssignmentStatus.ISSUED, AssignmentStatus.RETURNED) == 1
        assert transition_delta(AssignmentStatus.OVERDUE, AssignmentStatus.RETURNED) == 1

    def test_losing_an_issued_copy_changes_nothing(self):
        assert transition_delta(AssignmentStatus.ISSUED, AssignmentStatus.LOST) == 0

    def test_found_and_lost_again(self):
        assert transition_delta(AssignmentStatus.LOST, AssignmentStatus.RETURNED) == 1
        assert transition_delta(AssignmentStatus.RETURNED, AssignmentStatus.LOST) == -1

    @pytest.mark.parametrize("current,requested", [
        (AssignmentStatus.RETURNED, AssignmentStatus.ISSUED),
        (AssignmentStatus.LOST, AssignmentStatus.ISSUED),
        (AssignmentStatus.RETURNED, AssignmentStatus.OVERDUE),
        (AssignmentStatus.ISSUED, AssignmentStatus.OVERDUE),
    ])
    def test_disallowed(self, current, requested):
        assert (current, requested) not in LOAN_TRANSITIONS
        with pytest.raises(InvalidStateTransitionError):
            transition_delta(current, requested)


class TestIssueBook:

    @pytest.mark.asyncio
    async def test_issue_takes_a_copy(self, db_session, make_book, student):
        book = await make_book(total_copies=2)

        assignment, updated = await issue(db_session, book, student)

        assert assignment.status == AssignmentStatus.ISSUED
        assert assignment.issue_date == school_today()
        assert updated.available_copies == 1

    @pytest.mark.asyncio
    async def test_zero_copies_fails_without_writing(self, db_session, make_book, make_student):
        book = await make_book(total_copies=1)
        first, second = await make_student(), await make_student()
        book_id = book.id
        await issue(db_session, book, first)

        with pytest.raises(InsufficientAvailabilityError):
            await issue(db_session, book, second)

        loans = await db_session.scalar(
            select(func.count()).select_from(LibraryAssignment).where(LibraryAssignment.book_id == book_id)
        )
        refreshed = await library_service.get_book(db_session, book_id)
        assert loans == 1
        assert refreshed.available_copies == 0

    @pytest.mark.asyncio
    async def test_duplicate_active_loan(self, db_session, make_book, student):
        book = await make_book(total_copies=3)
        await issue(db_session, book, student)

        with pytest.raises(DuplicateActiveLoanError):
            await issue(db_session, book, student)

    @pytest.mark.asyncio
    async def test_due_before_issue(self, db_session, make_book, student):
        book = await make_book()

        with pytest.raises(ValidationError):
            await library_service.issue_book(
                db_session, loan(book, student, issue_date=school_today(), due_date=school_today() - timedelta(days=1))
            )

    @pytest.mark.asyncio
    async def test_concurrent_issue_of_last_copy(self, db_session, session_factory, make_book, make_student):
        """Two librarians issue the last copy at once: exactly one wins"""
        book = await make_book(total_copies=1)
        first, second = await make_student(), await make_student()
        book_id = book.id

        async def attempt(student_id):
            async with session_factory() as session:
                return await library_service.issue_book(
                    session, AssignmentCreate(book_id=book_id, student_id=student_id, due_date=due_in())
                )

        results = await asyncio.gather(attempt(first.id), attempt(second.id), return_exceptions=True)

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(failures) == 1
        assert isinstance(failures[0], InsufficientAvailabilityError)

        refreshed = await library_service.get_book(db_session, book_id)
        loans = await db_session.scalar(
            select(func.count()).select_from(LibraryAssignment).where(LibraryAssignment.book_id == book_id)
        )
        assert refreshed.available_copies == 0
        assert loans == 1

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_loan(self, db_session, session_factory, make_book, student):
        """The same student borrows the same book at two desks: one loan, one conflict"""
        book = await make_book(total_copies=2)
        book_id, student_id = book.id, student.id

        async def attempt():
            async with session_factory() as session:
                return await library_service.issue_book(
                    session, AssignmentCreate(book_id=book_id, student_id=student_id, due_date=due_in())
                )

        results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicateActiveLoanError)

        refreshed = await library_service.get_book(db_session, book_id)
        loans = await db_session.scalar(
            select(func.count()).select_from(LibraryAssignment).where(
                LibraryAssignment.book_id == book_id,
                LibraryAssignment.student_id == student_id,
            )
        )
        assert refreshed.available_copies == 1
        assert loans == 1

    @pytest.mark.asyncio
    async def test_closed_loans_do_not_block_a_new_one(self, db_session, make_book, student):
        book = await make_book(total_copies=1)
        first, _ = await issue(db_session, book, student)
        await set_status(db_session, first.id, AssignmentStatus.RETURNED)

        second, book = await issue(db_session, book, student)

        assert second.status == AssignmentStatus.ISSUED
        assert book.available_copies == 0


class TestAssignmentLifecycle:

    @pytest.mark.asyncio
    async def test_return_then_lost_then_found(self, db_session, make_book, student):
        book = await make_book(total_copies=1)
        assignment, _ = await issue(db_session, book, student)

        returned, book = await set_status(db_session, assignment.id, AssignmentStatus.RETURNED)
        assert returned.return_date == school_today()
        assert book.available_copies == 1

        _, book = await set_status(db_session, assignment.id, AssignmentStatus.LOST)
        assert book.available_copies == 0

        _, book = await set_status(db_session, assignment.id, AssignmentStatus.RETURNED)
        assert book.available_copies == 1

    @pytest.mark.asyncio
    async def test_returned_cannot_be_reissued(self, db_session, make_book, student):
        book = await make_book()
        assignment, _ = await issue(db_session, book, student)
        await set_status(db_session, assignment.id, AssignmentStatus.RETURNED)

        with pytest.raises(InvalidStateTransitionError):
            await set_status(db_session, assignment.id, AssignmentStatus.ISSUED)

    @pytest.mark.asyncio
    async def test_lost_while_issued_keeps_copy_out(self, db_session, make_book, student):
        book = await make_book(total_copies=2)
        assignment, _ = await issue(db_session, book, student)

        lost, book = await set_status(db_session, assignment.id, AssignmentStatus.LOST)

        assert lost.status == AssignmentStatus.LOST
        assert book.available_copies == 1

    @pytest.mark.asyncio
    async def test_remarks_only_update(self, db_session, make_book, student):
        book = await make_book(total_copies=2)
        assignment, _ = await issue(db_session, book, student)

        updated, book = await library_service.update_assignment(
            db_session, assignment.id, AssignmentUpdate(remarks="Cover torn")
        )

        assert updated.remarks == "Cover torn"
        assert updated.status == AssignmentStatus.ISSUED
        assert book.available_copies == 1

    @pytest.mark.asyncio
    async def test_cannot_delete_open_loan(self, db_session, make_book, student):
        book = await make_book()
        assignment, _ = await issue(db_session, book, student)

        with pytest.raises(InvalidStateTransitionError):
            await library_service.delete_assignment(db_session, assignment.id)

    @pytest.mark.asyncio
    async def test_delete_returned_loan_leaves_copies(self, db_session, make_book, student):
        book = await make_book(total_copies=2)
        book_id = book.id
        assignment, _ = await issue(db_session, book, student)
        await set_status(db_session, assignment.id, AssignmentStatus.RETURNED)

        await library_service.delete_assignment(db_session, assignment.id)

        assert (await library_service.get_book(db_session, book_id)).available_copies == 2

    @pytest.mark.asyncio
    async def test_delete_lost_loan_restores_copy(self, db_session, make_book, student):
        book = await make_book(total_copies=2)
        book_id = book.id
        assignment, _ = await issue(db_session, book, student)
        await set_status(db_session, assignment.id, AssignmentStatus.LOST)

        await library_service.delete_assignment(db_session, assignment.id)

        assert (await library_service.get_book(db_session, book_id)).available_copies == 2

    @pytest.mark.asyncio
    async def test_refresh_overdue(self, db_session, make_book, student):
        book = await make_book()
        today = school_today()
        assignment, _ = await library_service.issue_book(
            db_session, loan(book, student, issue_date=today - timedelta(days=20), due_date=today - timedelta(days=6))
        )

        flagged = await library_service.refresh_overdue(db_session)

        refreshed = await library_service.get_assignment(db_session, assignment.id)
        assert flagged == 1
        assert refreshed.status == AssignmentStatus.OVERDUE


class TestBookCatalogue:

    @pytest.mark.asyncio
    async def test_new_book_fully_available(self, make_book):
        book = await make_book(total_copies=4)

        assert book.available_copies == 4

    @pytest.mark.asyncio
    async def test_adding_copies_moves_available(self, db_session, make_book, student):
        book = await make_book(total_copies=2)
        await issue(db_session, book, student)

        updated = await library_service.update_book(
            db_session, book.id, BookUpdate(total_copies=5, reason="Donation"), performed_by="admin-1"
        )

        assert updated.total_copies == 5
        assert updated.available_copies == 4
        adjustment = (await db_session.execute(select(LedgerAdjustment))).scalar_one()
        assert adjustment.delta == 3
        assert adjustment.reason == "Donation"

    @pytest.mark.asyncio
    async def test_cannot_remove_issued_copies(self, db_session, make_book, make_student):
        book = await make_book(total_copies=2)
        book_id = book.id
        await issue(db_session, book, await make_student())
        await issue(db_session, book, await make_student())

        with pytest.raises(InsufficientAvailabilityError):
            await library_service.update_book(db_session, book_id, BookUpdate(total_copies=1))

        refreshed = await library_service.get_book(db_session, book_id)
        assert (refreshed.total_copies, refreshed.available_copies) == (2, 0)

    @pytest.mark.asyncio
    async def test_delete_blocked_by_active_loan(self, db_session, make_book, student):
        book = await make_book()
        await issue(db_session, book, student)

        with pytest.raises(ConflictError):
            await library_service.delete_book(db_session, book.id)

    @pytest.mark.asyncio
    async def test_duplicate_isbn(self, db_session, make_book):
        first = await make_book()
        second = await make_book()

        with pytest.raises(ConflictError):
            await library_service.update_book(db_session, second.id, BookUpdate(isbn=first.isbn))
