"""
Unit Tests for the error hierarchy
"""
from school_ledger.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    BookNotFoundError,
    ConflictError,
    DuplicateActiveLoanError,
    InsufficientAvailabilityError,
    InsufficientQuantityError,
    InvalidStateTransitionError,
    InventoryItemNotFoundError,
    MissingFieldsError,
    RequestTimeoutError,
    SchoolLedgerError,
    ValidationError,
)


class TestStatusCodes:
    """Each error class carries the HTTP status the API renders it with"""

    def test_auth_errors(self):
        assert AuthenticationError().status_code == 401
        assert AuthorizationError().status_code == 403

    def test_not_found(self):
        err = BookNotFoundError("b-1")
        assert err.status_code == 404
        assert err.code == "BOOK_NOT_FOUND"
        assert err.message == "Book not found"
        assert err.details["resource_id"] == "b-1"

    def test_multi_word_resource_code(self):
        assert InventoryItemNotFoundError("i-1").code == "INVENTORY_ITEM_NOT_FOUND"

    def test_validation(self):
        err = ValidationError("Due date cannot be before issue date", field="due_date")
        assert err.status_code == 400
        assert err.details == {"field": "due_date"}

    def test_conflicts_are_409(self):
        assert ConflictError("dup").status_code == 409
        assert DuplicateActiveLoanError("b-1", "s-1").status_code == 409
        assert InsufficientAvailabilityError("none left").status_code == 409
        assert InvalidStateTransitionError("no").status_code == 409

    def test_timeout_is_503(self):
        err = RequestTimeoutError(30)
        assert err.status_code == 503
        assert "30" in err.message


class TestErrorPayloads:

    def test_insufficient_quantity_details(self):
        err = InsufficientQuantityError(available=3, requested=5)

        assert isinstance(err, InsufficientAvailabilityError)
        assert err.details["available"] == 3
        assert err.details["requested"] == 5

    def test_invalid_transition_details(self):
        err = InvalidStateTransitionError("Cannot change", current="RETURNED", requested="ISSUED")

        assert err.details["current_status"] == "RETURNED"
        assert err.details["requested_status"] == "ISSUED"

    def test_missing_fields_message(self):
        err = MissingFieldsError(["name", "email"])

        assert isinstance(err, ValidationError)
        assert "name" in err.message and "email" in err.message

    def test_to_dict(self):
        data = ConflictError("dup", details={"isbn": "123"}).to_dict()

        assert data["message"] == "dup"
        assert data["code"] == "CONFLICT"
        assert data["details"] == {"isbn": "123"}

    def test_all_are_school_ledger_errors(self):
        assert issubclass(BookNotFoundError, SchoolLedgerError)
        assert issubclass(InsufficientQuantityError, SchoolLedgerError)
