from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import get_db
from school_ledger.models.fee import FeeStatus
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, require_capability
from school_ledger.schemas.fee import BulkFeeCreate, FeeCreate, FeeResponse, FeeUpdate
from school_ledger.services.fee_service import fee_service
from school_ledger.utils.envelope import ok
from school_ledger.utils.pagination import PaginationParams, pagination_params, serialize_page

router = APIRouter(prefix="/fees", tags=["Fees"])


@router.get("")
async def list_fees(
    student_id: Optional[str] = Query(None),
    class_id: Optional[str] = Query(None),
    fee_status: Optional[FeeStatus] = Query(None, alias="status"),
    fee_type: Optional[str] = Query(None, alias="type"),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.FEES_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await fee_service.list_fees(
        db, params, student_id=student_id, class_id=class_id, status=fee_status, type=fee_type
    )
    return ok(serialize_page(page, FeeResponse), "Fees retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_fee(
    data: FeeCreate,
    current_user: User = Depends(require_capability(Capability.FEES_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    fee = await fee_service.create_fee(db, data, performed_by=str(current_user.id))
    return ok(FeeResponse.model_validate(fee), "Fee created successfully")


@router.post("/bulk")
async def create_class_fees(
    data: BulkFeeCreate,
    current_user: User = Depends(require_capability(Capability.FEES_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    """One PENDING fee per student enrolled in the class"""
    result = await fee_service.create_class_fees(db, data, performed_by=str(current_user.id))
    return ok(result.to_dict(), f"{result.success_count} fees created successfully")


@router.put("/{fee_id}")
async def update_fee(
    fee_id: str,
    data: FeeUpdate,
    current_user: User = Depends(require_capability(Capability.FEES_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    fee = await fee_service.update_fee(db, fee_id, data, performed_by=str(current_user.id))
    return ok(FeeResponse.model_validate(fee), "Fee updated successfully")


@router.delete("/{fee_id}")
async def delete_fee(
    fee_id: str,
    current_user: User = Depends(require_capability(Capability.FEES_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    await fee_service.delete_fee(db, fee_id)
    return ok(message="Fee deleted successfully")
