from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import get_db
from school_ledger.models.hostel import RoomType
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, require_capability
from school_ledger.schemas.hostel import (
    AllocationCreate,
    AllocationResponse,
    AllocationResult,
    RoomCreate,
    RoomResponse,
)
from school_ledger.services.hostel_service import hostel_service
from school_ledger.utils.envelope import ok
from school_ledger.utils.pagination import PaginationParams, pagination_params, serialize_page

router = APIRouter(prefix="/hostel", tags=["Hostel"])


def _allocation_payload(allocation, room) -> AllocationResult:
    return AllocationResult(
        allocation=AllocationResponse.model_validate(allocation),
        room=RoomResponse.model_validate(room),
    )


@router.get("/rooms")
async def list_rooms(
    search: Optional[str] = Query(None),
    room_type: Optional[RoomType] = Query(None, alias="type"),
    available_only: bool = Query(False, alias="availableOnly"),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.HOSTEL_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await hostel_service.list_rooms(db, params, search=search, type=room_type, available_only=available_only)
    return ok(serialize_page(page, RoomResponse), "Hostel rooms retrieved successfully")


@router.post("/rooms", status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreate,
    current_user: User = Depends(require_capability(Capability.HOSTEL_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    room = await hostel_service.create_room(db, data)
    return ok(RoomResponse.model_validate(room), "Hostel room created successfully")


@router.delete("/rooms/{room_id}")
async def delete_room(
    room_id: str,
    current_user: User = Depends(require_capability(Capability.HOSTEL_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    await hostel_service.delete_room(db, room_id)
    return ok(message="Hostel room deleted successfully")


@router.post("/allocations", status_code=status.HTTP_201_CREATED)
async def allocate_room(
    data: AllocationCreate,
    current_user: User = Depends(require_capability(Capability.HOSTEL_ALLOCATE)),
    db: AsyncSession = Depends(get_db)
):
    allocation, room = await hostel_service.allocate(db, data, performed_by=str(current_user.id))
    return ok(_allocation_payload(allocation, room), "Room allocated successfully")


@router.post("/allocations/{allocation_id}/vacate")
async def vacate_room(
    allocation_id: str,
    current_user: User = Depends(require_capability(Capability.HOSTEL_ALLOCATE)),
    db: AsyncSession = Depends(get_db)
):
    allocation, room = await hostel_service.vacate(db, allocation_id, performed_by=str(current_user.id))
    return ok(_allocation_payload(allocation, room), "Room vacated successfully")
