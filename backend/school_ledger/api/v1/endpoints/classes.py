from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import get_db
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, require_capability
from school_ledger.schemas.school import ClassCreate, ClassResponse
from school_ledger.services.class_service import class_service
from school_ledger.utils.envelope import ok
from school_ledger.utils.pagination import PaginationParams, pagination_params, serialize_page

router = APIRouter(prefix="/classes", tags=["Classes"])


@router.get("")
async def list_classes(
    academic_year: Optional[str] = Query(None),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.CLASSES_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await class_service.list_classes(db, params, academic_year=academic_year)
    return ok(serialize_page(page, ClassResponse), "Classes retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreate,
    current_user: User = Depends(require_capability(Capability.CLASSES_WRITE)),
    db: AsyncSession = Depends(get_db)
):
    school_class = await class_service.create_class(db, data)
    return ok(ClassResponse.model_validate(school_class), "Class created successfully")


@router.get("/{class_id}")
async def get_class(
    class_id: str,
    current_user: User = Depends(require_capability(Capability.CLASSES_READ)),
    db: AsyncSession = Depends(get_db)
):
    school_class = await class_service.get_class(db, class_id)
    return ok(ClassResponse.model_validate(school_class), "Class retrieved successfully")


@router.delete("/{class_id}")
async def delete_class(
    class_id: str,
    current_user: User = Depends(require_capability(Capability.CLASSES_WRITE)),
    db: AsyncSession = Depends(get_db)
):
    await class_service.delete_class(db, class_id)
    return ok(message="Class deleted successfully")
