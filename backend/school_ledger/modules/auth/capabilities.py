"""
Role-based capability table.

Endpoints declare the capability they need with
``Depends(require_capability(Capability.LIBRARY_CIRCULATE))``; which roles
hold it is decided here and nowhere else.
"""
import enum
from typing import Dict, FrozenSet

from school_ledger.models.user import UserRole


class Capability(str, enum.Enum):
    USERS_MANAGE = "users:manage"

    CLASSES_READ = "classes:read"
    CLASSES_WRITE = "classes:write"

    STUDENTS_READ = "students:read"
    STUDENTS_WRITE = "students:write"
    STUDENTS_IMPORT = "students:import"

    ATTENDANCE_READ = "attendance:read"
    ATTENDANCE_MARK = "attendance:mark"

    LIBRARY_READ = "library:read"
    LIBRARY_MANAGE = "library:manage"        # catalogue: books and copies
    LIBRARY_CIRCULATE = "library:circulate"  # issue / return / lost

    INVENTORY_READ = "inventory:read"
    INVENTORY_MANAGE = "inventory:manage"
    INVENTORY_TRANSACT = "inventory:transact"

    HOSTEL_READ = "hostel:read"
    HOSTEL_MANAGE = "hostel:manage"
    HOSTEL_ALLOCATE = "hostel:allocate"

    FEES_READ = "fees:read"
    FEES_MANAGE = "fees:manage"


ROLE_CAPABILITIES: Dict[UserRole, FrozenSet[Capability]] = {
    UserRole.ADMIN: frozenset(Capability),
    UserRole.TEACHER: frozenset({
        Capability.CLASSES_READ,
        Capability.STUDENTS_READ,
        Capability.ATTENDANCE_READ,
        Capability.ATTENDANCE_MARK,
        Capability.LIBRARY_READ,
    }),
    UserRole.LIBRARIAN: frozenset({
        Capability.STUDENTS_READ,
        Capability.LIBRARY_READ,
        Capability.LIBRARY_MANAGE,
        Capability.LIBRARY_CIRCULATE,
    }),
    UserRole.ACCOUNTANT: frozenset({
        Capability.CLASSES_READ,
        Capability.STUDENTS_READ,
        Capability.FEES_READ,
        Capability.FEES_MANAGE,
        Capability.INVENTORY_READ,
        Capability.INVENTORY_MANAGE,
        Capability.INVENTORY_TRANSACT,
    }),
    UserRole.WARDEN: frozenset({
        Capability.STUDENTS_READ,
        Capability.HOSTEL_READ,
        Capability.HOSTEL_MANAGE,
        Capability.HOSTEL_ALLOCATE,
    }),
    UserRole.STUDENT: frozenset({
        Capability.LIBRARY_READ,
    }),
}


def has_capability(role: UserRole, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())
