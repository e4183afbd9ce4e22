"""
Custom Exceptions for School Ledger
===================================

Every failure a ledger operation can report has its own class so the API
layer can map it to a deterministic HTTP status and envelope:

    NotFound                  -> ResourceNotFoundError          404
    ValidationFailed          -> ValidationError                400
    Conflict                  -> ConflictError                  409
    InsufficientAvailability  -> InsufficientAvailabilityError  409
    InvalidStateTransition    -> InvalidStateTransitionError    409
    Unauthorized / Forbidden  -> AuthenticationError / AuthorizationError
    Unavailable               -> ServiceUnavailableError        503

Usage:
    from school_ledger.core.exceptions import BookNotFoundError

    if not book:
        raise BookNotFoundError(book_id)
"""

from typing import Optional, Any, Dict


class SchoolLedgerError(Exception):
    """Base exception for all School Ledger errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(SchoolLedgerError):
    """Caller could not be authenticated"""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, code="UNAUTHORIZED")


class AuthorizationError(SchoolLedgerError):
    """Caller is authenticated but lacks the capability"""

    status_code = 403

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, code="FORBIDDEN")


class InvalidTokenError(AuthenticationError):
    """JWT token is invalid or expired"""

    def __init__(self):
        super().__init__("Invalid or expired token")
        self.code = "INVALID_TOKEN"


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(SchoolLedgerError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} not found",
            code=f"{resource_type.upper().replace(' ', '_')}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class StudentNotFoundError(ResourceNotFoundError):
    def __init__(self, student_id: str):
        super().__init__("Student", student_id)


class ClassNotFoundError(ResourceNotFoundError):
    def __init__(self, class_id: str):
        super().__init__("Class", class_id)


class BookNotFoundError(ResourceNotFoundError):
    def __init__(self, book_id: str):
        super().__init__("Book", book_id)


class AssignmentNotFoundError(ResourceNotFoundError):
    def __init__(self, assignment_id: str):
        super().__init__("Assignment", assignment_id)


class InventoryItemNotFoundError(ResourceNotFoundError):
    def __init__(self, item_id: str):
        super().__init__("Inventory item", item_id)


class TransactionNotFoundError(ResourceNotFoundError):
    def __init__(self, transaction_id: str):
        super().__init__("Transaction", transaction_id)


class RoomNotFoundError(ResourceNotFoundError):
    def __init__(self, room_id: str):
        super().__init__("Hostel room", room_id)


class AllocationNotFoundError(ResourceNotFoundError):
    def __init__(self, allocation_id: str):
        super().__init__("Hostel allocation", allocation_id)


class FeeNotFoundError(ResourceNotFoundError):
    def __init__(self, fee_id: str):
        super().__init__("Fee record", fee_id)


class UserNotFoundError(ResourceNotFoundError):
    def __init__(self, user_id: str):
        super().__init__("User", user_id)


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(SchoolLedgerError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class MissingFieldsError(ValidationError):
    """Required fields absent from an input row"""

    def __init__(self, fields: list):
        super().__init__(f"Missing required fields: {', '.join(fields)}")
        self.code = "MISSING_FIELDS"
        self.details = {"fields": fields}


# ============================================
# Conflict Errors (409-type)
# ============================================

class ConflictError(SchoolLedgerError):
    """A unique key or an exclusive relationship already exists"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFLICT", details=details)


class DuplicateActiveLoanError(ConflictError):
    """Student already holds an active loan of the book"""

    def __init__(self, book_id: str, student_id: str):
        super().__init__(
            "Student already has this book issued",
            details={"book_id": book_id, "student_id": student_id}
        )
        self.code = "DUPLICATE_ACTIVE_LOAN"


class DuplicateAllocationError(ConflictError):
    """Student already occupies a hostel bed"""

    def __init__(self, student_id: str):
        super().__init__(
            "Student already has an active hostel allocation",
            details={"student_id": student_id}
        )
        self.code = "DUPLICATE_ALLOCATION"


class InsufficientAvailabilityError(SchoolLedgerError):
    """Stock, copies or capacity exhausted"""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INSUFFICIENT_AVAILABILITY", details=details)


class InsufficientQuantityError(InsufficientAvailabilityError):
    """Inventory stock-out larger than the quantity on hand"""

    def __init__(self, available: int, requested: int):
        super().__init__(
            "Insufficient quantity available",
            details={"available": available, "requested": requested}
        )
        self.code = "INSUFFICIENT_QUANTITY"


class InvalidStateTransitionError(SchoolLedgerError):
    """Requested status change is not allowed from the current status"""

    status_code = 409

    def __init__(self, message: str, current: Optional[str] = None, requested: Optional[str] = None):
        details = {}
        if current is not None:
            details["current_status"] = current
        if requested is not None:
            details["requested_status"] = requested
        super().__init__(message, code="INVALID_STATE_TRANSITION", details=details)


# ============================================
# Availability Errors (503-type)
# ============================================

class ServiceUnavailableError(SchoolLedgerError):
    """Store unreachable or request timed out; safe to retry"""

    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message, code="UNAVAILABLE")


class RequestTimeoutError(ServiceUnavailableError):
    """Request exceeded the configured time budget"""

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Request timed out after {timeout_seconds:g}s")
        self.code = "REQUEST_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds
