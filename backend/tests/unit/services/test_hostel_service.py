"""
Unit Tests for Hostel Service
"""
import asyncio
import pytest
from sqlalchemy import select, func

from school_ledger.core.exceptions import (
    ConflictError,
    DuplicateAllocationError,
    InsufficientAvailabilityError,
    InvalidStateTransitionError,
)
from school_ledger.models import AllocationStatus, HostelAllocation, HostelRoom, RoomType
from school_ledger.schemas.hostel import AllocationCreate, RoomCreate
from school_ledger.services.hostel_service import hostel_service


async def make_room(db, number="101", room_type=RoomType.DOUBLE, capacity=2):
    return await hostel_service.create_room(db, RoomCreate(number=number, type=room_type, capacity=capacity))


class TestRooms:

    def test_capacity_limited_by_room_type(self):
        with pytest.raises(ValueError):
            RoomCreate(number="1", type=RoomType.SINGLE, capacity=2)

    @pytest.mark.asyncio
    async def test_duplicate_number(self, db_session):
        await make_room(db_session)

        with pytest.raises(ConflictError):
            await make_room(db_session)


class TestAllocations:

    @pytest.mark.asyncio
    async def test_allocate_and_vacate(self, db_session, student):
        room = await make_room(db_session)

        allocation, room = await hostel_service.allocate(
            db_session, AllocationCreate(room_id=room.id, student_id=student.id)
        )
        assert allocation.status == AllocationStatus.ACTIVE
        assert room.occupied == 1

        allocation, room = await hostel_service.vacate(db_session, allocation.id)
        assert allocation.status == AllocationStatus.VACATED
        assert allocation.vacated_on is not None
        assert room.occupied == 0

    @pytest.mark.asyncio
    async def test_full_room(self, db_session, make_student):
        room = await make_room(db_session, room_type=RoomType.SINGLE, capacity=1)
        room_id = room.id
        first, second = await make_student(), await make_student()
        await hostel_service.allocate(db_session, AllocationCreate(room_id=room_id, student_id=first.id))

        with pytest.raises(InsufficientAvailabilityError):
            await hostel_service.allocate(db_session, AllocationCreate(room_id=room_id, student_id=second.id))

    @pytest.mark.asyncio
    async def test_one_bed_per_student(self, db_session, student):
        first = await make_room(db_session, number="101")
        second = await make_room(db_session, number="102")
        student_id = student.id
        await hostel_service.allocate(db_session, AllocationCreate(room_id=first.id, student_id=student_id))

        with pytest.raises(DuplicateAllocationError):
            await hostel_service.allocate(db_session, AllocationCreate(room_id=second.id, student_id=student_id))

    @pytest.mark.asyncio
    async def test_vacate_twice(self, db_session, student):
        room = await make_room(db_session)
        allocation, _ = await hostel_service.allocate(db_session, AllocationCreate(room_id=room.id, student_id=student.id))
        await hostel_service.vacate(db_session, allocation.id)

        with pytest.raises(InvalidStateTransitionError):
            await hostel_service.vacate(db_session, allocation.id)

    @pytest.mark.asyncio
    async def test_delete_room_blocked_while_occupied(self, db_session, student):
        room = await make_room(db_session)
        await hostel_service.allocate(db_session, AllocationCreate(room_id=room.id, student_id=student.id))

        with pytest.raises(ConflictError):
            await hostel_service.delete_room(db_session, room.id)

    @pytest.mark.asyncio
    async def test_concurrent_beds_for_one_student(self, db_session, session_factory, student):
        """Two wardens place the same student in different rooms at once: one bed only"""
        first = await make_room(db_session, number="101")
        second = await make_room(db_session, number="102")
        room_ids, student_id = (first.id, second.id), student.id

        async def attempt(room_id):
            async with session_factory() as session:
                return await hostel_service.allocate(
                    session, AllocationCreate(room_id=room_id, student_id=student_id)
                )

        results = await asyncio.gather(*(attempt(r) for r in room_ids), return_exceptions=True)

        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(failures) == 1
        assert isinstance(failures[0], DuplicateAllocationError)

        active = await db_session.scalar(
            select(func.count()).select_from(HostelAllocation).where(
                HostelAllocation.student_id == student_id,
                HostelAllocation.status == AllocationStatus.ACTIVE,
            )
        )
        occupied = await db_session.scalar(
            select(func.sum(HostelRoom.occupied)).where(HostelRoom.id.in_(room_ids))
        )
        assert active == 1
        assert occupied == 1

    @pytest.mark.asyncio
    async def test_reallocate_after_vacating(self, db_session, student):
        first = await make_room(db_session, number="101")
        second = await make_room(db_session, number="102")
        student_id = student.id
        allocation, _ = await hostel_service.allocate(db_session, AllocationCreate(room_id=first.id, student_id=student_id))
        await hostel_service.vacate(db_session, allocation.id)

        allocation, room = await hostel_service.allocate(
            db_session, AllocationCreate(room_id=second.id, student_id=student_id)
        )

        assert allocation.status == AllocationStatus.ACTIVE
        assert room.occupied == 1
