"""
Unit Tests for the guarded delta and the ledger transaction runner
"""
import pytest
from sqlalchemy.exc import IntegrityError

from school_ledger.core.exceptions import InsufficientAvailabilityError, InvalidStateTransitionError
from school_ledger.models import LibraryBook
from school_ledger.services.ledger_service import LedgerOperation, apply_delta, ledger_service


def _exhausted(current):
    return InsufficientAvailabilityError("exhausted", details={"current": current})


def _overfull(current):
    return InvalidStateTransitionError("overfull")


class TestApplyDelta:
    """0 <= available_copies <= total_copies is enforced by the UPDATE itself"""

    @pytest.mark.asyncio
    async def test_decrement_within_bounds(self, db_session, make_book):
        book = await make_book(total_copies=2)

        updated = await apply_delta(
            db_session, LibraryBook, book.id, "available_copies", -1, _exhausted,
            minimum=0, maximum=LibraryBook.total_copies,
        )
        await db_session.commit()

        assert updated.available_copies == 1

    @pytest.mark.asyncio
    async def test_below_minimum_rejected(self, db_session, make_book):
        book = await make_book(total_copies=1)
        book_id = book.id
        await apply_delta(db_session, LibraryBook, book_id, "available_copies", -1, _exhausted)
        await db_session.commit()

        with pytest.raises(InsufficientAvailabilityError) as exc_info:
            await apply_delta(db_session, LibraryBook, book_id, "available_copies", -1, _exhausted)
        await db_session.rollback()

        assert exc_info.value.details["current"] == 0
        book = await db_session.get(LibraryBook, book_id, populate_existing=True)
        assert book.available_copies == 0

    @pytest.mark.asyncio
    async def test_above_column_maximum_rejected(self, db_session, make_book):
        book = await make_book(total_copies=3)
        book_id = book.id

        with pytest.raises(InvalidStateTransitionError):
            await apply_delta(
                db_session, LibraryBook, book_id, "available_copies", +1, _overfull,
                maximum=LibraryBook.total_copies,
            )
        await db_session.rollback()

        book = await db_session.get(LibraryBook, book_id, populate_existing=True)
        assert book.available_copies == 3

    @pytest.mark.asyncio
    async def test_extra_values_in_same_statement(self, db_session, make_book):
        book = await make_book(total_copies=2)

        updated = await apply_delta(
            db_session, LibraryBook, book.id, "available_copies", 3, _exhausted,
            extra_values={"total_copies": LibraryBook.total_copies + 3},
        )
        await db_session.commit()

        assert updated.total_copies == 5
        assert updated.available_copies == 5


class FlakyOperation(LedgerOperation[str]):
    """Loses a unique-key race on the first attempt"""
    kind = "test_flaky"

    def __init__(self, retry: bool):
        super().__init__()
        self.retry_on_integrity_error = retry
        self.attempts = 0

    async def write(self, db):
        self.attempts += 1
        if self.attempts == 1:
            raise IntegrityError("INSERT INTO attendance", {}, Exception("UNIQUE constraint failed"))
        return "written"


class TestLedgerService:

    @pytest.mark.asyncio
    async def test_retries_once_after_integrity_error(self, db_session):
        operation = FlakyOperation(retry=True)

        result = await ledger_service.apply(db_session, operation)

        assert result == "written"
        assert operation.attempts == 2

    @pytest.mark.asyncio
    async def test_integrity_error_propagates_without_retry(self, db_session):
        operation = FlakyOperation(retry=False)

        with pytest.raises(IntegrityError):
            await ledger_service.apply(db_session, operation)

        assert operation.attempts == 1

    @pytest.mark.asyncio
    async def test_change_records_entries(self, db_session, make_book):
        book = await make_book(total_copies=2)

        class TakeCopy(LedgerOperation[LibraryBook]):
            async def write(self, db):
                return await self.change(db, LibraryBook, book.id, "available_copies", -1, _exhausted)

        operation = TakeCopy(performed_by="librarian-1")
        updated = await ledger_service.apply(db_session, operation)

        assert updated.available_copies == 1
        assert len(operation.entries) == 1
        entry = operation.entries[0]
        assert (entry.subject_type, entry.field, entry.delta) == ("library_books", "available_copies", -1)
