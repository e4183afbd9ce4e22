from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date, datetime

from school_ledger.models.hostel import RoomType, AllocationStatus, ROOM_TYPE_MAX_CAPACITY


class RoomCreate(BaseModel):
    number: str = Field(..., min_length=1, max_length=20)
    type: RoomType
    capacity: int = Field(..., ge=1)

    @model_validator(mode='after')
    def capacity_fits_type(self):
        max_capacity = ROOM_TYPE_MAX_CAPACITY[self.type]
        if self.capacity > max_capacity:
            raise ValueError(f"Capacity cannot exceed {max_capacity} for {self.type.value} room")
        return self


class RoomResponse(BaseModel):
    id: str
    number: str
    type: RoomType
    capacity: int
    occupied: int
    created_at: datetime

    class Config:
        from_attributes = True


class AllocationCreate(BaseModel):
    room_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    allocated_on: Optional[date] = Field(None, description="Defaults to today")


class AllocationResponse(BaseModel):
    id: str
    room_id: str
    student_id: str
    status: AllocationStatus
    allocated_on: date
    vacated_on: Optional[date] = None
    allocated_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class AllocationResult(BaseModel):
    allocation: AllocationResponse
    room: RoomResponse
