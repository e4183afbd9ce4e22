"""
Auth API Endpoints

Endpoints:
- POST /auth/register - Admin creates a staff or student account
- POST /auth/login - Exchange email/password for a bearer token
- GET /auth/me - Current user
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.database import get_db
from school_ledger.core.rate_limiter import login_rate_limit
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, get_current_user, require_capability
from school_ledger.schemas.auth import Token, UserLogin, UserRegister, UserResponse
from school_ledger.services.auth_service import auth_service
from school_ledger.utils.envelope import ok

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    data: UserRegister,
    current_user: User = Depends(require_capability(Capability.USERS_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    user = await auth_service.register(db, data)
    return ok(UserResponse.model_validate(user), "User registered successfully")


@router.post("/login")
@login_rate_limit()
async def login(
    request: Request,
    data: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Returns a bearer token valid for ACCESS_TOKEN_EXPIRE_MINUTES"""
    user, token, expires_in = await auth_service.login(db, data.email, data.password)
    return ok(
        {
            "token": Token(access_token=token, expires_in=expires_in),
            "user": UserResponse.model_validate(user),
        },
        "Login successful",
    )


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return ok(UserResponse.model_validate(current_user), "Current user")
