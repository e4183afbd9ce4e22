from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Callable, Optional
import uuid

from school_ledger.core.database import get_db
from school_ledger.core.exceptions import AuthenticationError, AuthorizationError
from school_ledger.core.logging_config import set_user_id
from school_ledger.core.security import decode_token
from school_ledger.models.user import User
from school_ledger.modules.auth.capabilities import Capability, has_capability

# auto_error=False so a missing header is our 401, not FastAPI's default
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Get current authenticated user"""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Not authenticated")

    payload = decode_token(credentials.credentials)

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")

    try:
        uuid.UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid user ID format")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user:
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthorizationError("User account is inactive")

    set_user_id(str(user.id))
    return user


def require_capability(capability: Capability) -> Callable:
    """
    Dependency factory: resolve the user and check the role grants ``capability``.

    Usage:
        @router.post("/books")
        async def create_book(user: User = Depends(require_capability(Capability.LIBRARY_MANAGE))):
            ...
    """
    async def _check(current_user: User = Depends(get_current_user)) -> User:
        if not has_capability(current_user.role, capability):
            raise AuthorizationError(f"Missing capability: {capability.value}")
        return current_user

    return _check
