"""
Auth Service - staff accounts and password login
"""

from datetime import timedelta
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Tuple

from school_ledger.core.config import settings
from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import AuthenticationError, AuthorizationError, ConflictError
from school_ledger.core.logging_config import logger
from school_ledger.core.security import create_access_token, get_password_hash, verify_password
from school_ledger.core.types import utcnow
from school_ledger.models.user import User
from school_ledger.schemas.auth import UserRegister


class AuthService:

    async def register(self, db: AsyncSession, data: UserRegister) -> User:
        async def _work(session: AsyncSession) -> User:
            email = data.email.lower()
            if await session.scalar(select(User.id).where(User.email == email)):
                raise ConflictError("Email already registered", details={"email": email})
            user = User(
                email=email,
                name=data.name,
                hashed_password=get_password_hash(data.password),
                role=data.role,
                is_active=True,
            )
            session.add(user)
            await session.flush()
            return user

        user = await run_in_transaction(db, _work)
        logger.log_auth_event("register", True, user_email=user.email, role=user.role.value)
        return user

    async def login(self, db: AsyncSession, email: str, password: str) -> Tuple[User, str, int]:
        """Returns (user, access_token, expires_in_seconds)"""
        user = await db.scalar(select(User).where(User.email == email.lower()))

        if user is None or not verify_password(password, user.hashed_password):
            logger.log_auth_event("login", False, user_email=email, reason="invalid credentials")
            raise AuthenticationError("Incorrect email or password")

        if not user.is_active:
            logger.log_auth_event("login", False, user_email=email, reason="inactive")
            raise AuthorizationError("User account is inactive")

        user.last_login = utcnow()
        await db.commit()

        expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        token = create_access_token({"sub": str(user.id), "role": user.role.value}, expires_delta=expires)
        logger.log_auth_event("login", True, user_email=user.email)
        return user, token, int(expires.total_seconds())


auth_service = AuthService()
