# Re-export all models for convenient imports
from school_ledger.models.user import User, UserRole
from school_ledger.models.school import SchoolClass, Student
from school_ledger.models.attendance import Attendance, AttendanceStatus
from school_ledger.models.library import LibraryBook, LibraryAssignment, AssignmentStatus, ACTIVE_LOAN_STATUSES
from school_ledger.models.inventory import InventoryItem, InventoryTransaction, TransactionType
from school_ledger.models.hostel import (
    HostelRoom,
    HostelAllocation,
    RoomType,
    AllocationStatus,
    ROOM_TYPE_MAX_CAPACITY,
)
from school_ledger.models.fee import Fee, FeeStatus
from school_ledger.models.ledger import LedgerAdjustment

__all__ = [
    # User
    "User",
    "UserRole",
    # School
    "SchoolClass",
    "Student",
    # Attendance
    "Attendance",
    "AttendanceStatus",
    # Library
    "LibraryBook",
    "LibraryAssignment",
    "AssignmentStatus",
    "ACTIVE_LOAN_STATUSES",
    # Inventory
    "InventoryItem",
    "InventoryTransaction",
    "TransactionType",
    # Hostel
    "HostelRoom",
    "HostelAllocation",
    "RoomType",
    "AllocationStatus",
    "ROOM_TYPE_MAX_CAPACITY",
    # Fees
    "Fee",
    "FeeStatus",
    # Adjustments
    "LedgerAdjustment",
]
