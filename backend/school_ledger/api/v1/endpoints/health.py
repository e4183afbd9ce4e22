from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from school_ledger.core.config import settings
from school_ledger.core.database import get_db
from school_ledger.utils.envelope import ok

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness plus a round trip to the store; a store failure surfaces as 503"""
    await db.execute(text("SELECT 1"))
    return ok(
        {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "environment": settings.ENVIRONMENT,
            "database": "connected",
        },
        "Service is healthy",
    )
