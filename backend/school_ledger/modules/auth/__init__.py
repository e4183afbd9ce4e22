# Authentication module

from school_ledger.modules.auth.capabilities import Capability, ROLE_CAPABILITIES, has_capability
from school_ledger.modules.auth.dependencies import get_current_user, require_capability

__all__ = [
    "Capability",
    "ROLE_CAPABILITIES",
    "has_capability",
    "get_current_user",
    "require_capability",
]
