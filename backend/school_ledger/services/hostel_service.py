"""
Hostel Service - rooms and bed allocations

occupied is DerivedState bounded by [0, capacity]: allocating a bed is +1,
vacating it is -1, each applied with a guarded update.
"""

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Tuple

from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import (
    AllocationNotFoundError,
    ConflictError,
    DuplicateAllocationError,
    InsufficientAvailabilityError,
    InvalidStateTransitionError,
    RoomNotFoundError,
    StudentNotFoundError,
)
from school_ledger.core.logging_config import logger
from school_ledger.models import AllocationStatus, HostelAllocation, HostelRoom, RoomType, Student
from school_ledger.schemas.hostel import AllocationCreate, RoomCreate
from school_ledger.services.ledger_service import LedgerOperation, fetch_subject, ledger_service
from school_ledger.utils.dates import school_today
from school_ledger.utils.pagination import PaginationParams, paginate


def _room_full(room_id: str):
    def _error(current: Optional[int]) -> InsufficientAvailabilityError:
        return InsufficientAvailabilityError(
            "Hostel room is full",
            details={"room_id": room_id, "occupied": current},
        )
    return _error


def _room_empty(room_id: str):
    def _error(current: Optional[int]) -> InvalidStateTransitionError:
        error = InvalidStateTransitionError("Hostel room has no occupants to vacate")
        error.details.update({"room_id": room_id, "occupied": current})
        return error
    return _error


class AllocateBed(LedgerOperation[Tuple[HostelAllocation, HostelRoom]]):
    kind = "hostel_allocate"
    # A racing second bed trips uq_allocation_active_student; the rerun check reports it
    retry_on_integrity_error = True

    def __init__(self, data: AllocationCreate, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.data = data

    def subject_id(self) -> str:
        return self.data.room_id

    async def load(self, db: AsyncSession) -> None:
        self.room = await fetch_subject(db, HostelRoom, self.data.room_id, RoomNotFoundError)
        self.student = await fetch_subject(db, Student, self.data.student_id, StudentNotFoundError, lock=False)

    async def check(self, db: AsyncSession) -> None:
        if self.room.occupied >= self.room.capacity:
            raise _room_full(self.room.id)(self.room.occupied)

        current = await db.scalar(
            select(HostelAllocation.id).where(
                HostelAllocation.student_id == self.student.id,
                HostelAllocation.status == AllocationStatus.ACTIVE,
            )
        )
        if current:
            raise DuplicateAllocationError(self.student.id)

    async def write(self, db: AsyncSession) -> Tuple[HostelAllocation, HostelRoom]:
        allocation = HostelAllocation(
            room_id=self.room.id,
            student_id=self.student.id,
            status=AllocationStatus.ACTIVE,
            allocated_on=self.data.allocated_on or school_today(),
            allocated_by=self.performed_by,
        )
        db.add(allocation)
        await db.flush()

        room = await self.change(
            db, HostelRoom, self.room.id, "occupied", +1, _room_full(self.room.id),
            minimum=0, maximum=HostelRoom.capacity,
        )
        return allocation, room


class VacateBed(LedgerOperation[Tuple[HostelAllocation, HostelRoom]]):
    """ACTIVE -> VACATED; anything else is an invalid transition"""
    kind = "hostel_vacate"

    def __init__(self, allocation_id: str, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.allocation_id = allocation_id

    def subject_id(self) -> str:
        return self.allocation_id

    async def load(self, db: AsyncSession) -> None:
        self.allocation = await fetch_subject(db, HostelAllocation, self.allocation_id, AllocationNotFoundError)
        self.room = await fetch_subject(db, HostelRoom, self.allocation.room_id, RoomNotFoundError)

    async def check(self, db: AsyncSession) -> None:
        if self.allocation.status != AllocationStatus.ACTIVE:
            raise InvalidStateTransitionError(
                "Allocation has already been vacated",
                current=self.allocation.status.value,
                requested=AllocationStatus.VACATED.value,
            )

    async def write(self, db: AsyncSession) -> Tuple[HostelAllocation, HostelRoom]:
        allocation = self.allocation
        allocation.status = AllocationStatus.VACATED
        allocation.vacated_on = school_today()
        await db.flush()

        room = await self.change(
            db, HostelRoom, self.room.id, "occupied", -1, _room_empty(self.room.id),
            minimum=0, maximum=HostelRoom.capacity,
        )
        return allocation, room


class HostelService:
    """Service for hostel rooms and allocations"""

    async def create_room(self, db: AsyncSession, data: RoomCreate) -> HostelRoom:
        async def _work(session: AsyncSession) -> HostelRoom:
            if await session.scalar(select(HostelRoom.id).where(HostelRoom.number == data.number)):
                raise ConflictError("Hostel room with this number already exists", details={"number": data.number})
            room = HostelRoom(number=data.number, type=data.type, capacity=data.capacity, occupied=0)
            session.add(room)
            await session.flush()
            return room

        room = await run_in_transaction(db, _work)
        logger.info(f"Created hostel room {room.number} ({room.type.value}, capacity {room.capacity})")
        return room

    async def list_rooms(
        self,
        db: AsyncSession,
        params: PaginationParams,
        search: Optional[str] = None,
        type: Optional[RoomType] = None,
        available_only: bool = False,
    ) -> dict:
        query = select(HostelRoom).order_by(HostelRoom.number)
        if search:
            query = query.where(func.lower(HostelRoom.number).like(f"%{search.lower()}%"))
        if type is not None:
            query = query.where(HostelRoom.type == type)
        if available_only:
            query = query.where(HostelRoom.occupied < HostelRoom.capacity)
        return await paginate(db, query, params)

    async def delete_room(self, db: AsyncSession, room_id: str) -> None:
        """Blocked while any bed is allocated; vacated history goes with the room"""
        async def _work(session: AsyncSession) -> None:
            room = await fetch_subject(session, HostelRoom, room_id, RoomNotFoundError)
            active = await session.scalar(
                select(func.count()).select_from(HostelAllocation).where(
                    HostelAllocation.room_id == room.id,
                    HostelAllocation.status == AllocationStatus.ACTIVE,
                )
            )
            if active:
                raise ConflictError(
                    "Cannot delete a room with active allocations",
                    details={"room_id": room.id, "active_allocations": active},
                )
            await session.execute(delete(HostelAllocation).where(HostelAllocation.room_id == room.id))
            await session.execute(delete(HostelRoom).where(HostelRoom.id == room.id))

        await run_in_transaction(db, _work)
        logger.info(f"Deleted hostel room {room_id}")

    async def allocate(
        self, db: AsyncSession, data: AllocationCreate, performed_by: Optional[str] = None
    ) -> Tuple[HostelAllocation, HostelRoom]:
        return await ledger_service.apply(db, AllocateBed(data, performed_by))

    async def vacate(
        self, db: AsyncSession, allocation_id: str, performed_by: Optional[str] = None
    ) -> Tuple[HostelAllocation, HostelRoom]:
        return await ledger_service.apply(db, VacateBed(allocation_id, performed_by))


hostel_service = HostelService()
