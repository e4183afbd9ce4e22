from pydantic import BaseModel, Field
from typing import Optional
from datetime import date, datetime
from decimal import Decimal

from school_ledger.models.fee import FeeStatus


class FeeCreate(BaseModel):
    student_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    type: str = Field(..., min_length=1, max_length=50)
    due_date: date
    status: FeeStatus = FeeStatus.PENDING
    remarks: Optional[str] = None


class BulkFeeCreate(BaseModel):
    """One PENDING fee for every student enrolled in the class"""
    class_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    type: str = Field(..., min_length=1, max_length=50)
    due_date: date
    description: Optional[str] = None


class FeeUpdate(BaseModel):
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=10, decimal_places=2)
    type: Optional[str] = Field(None, min_length=1, max_length=50)
    due_date: Optional[date] = None
    status: Optional[FeeStatus] = None
    paid_date: Optional[date] = Field(None, description="Used when marking PAID; defaults to today")
    remarks: Optional[str] = None


class FeeResponse(BaseModel):
    id: str
    student_id: str
    amount: Decimal
    type: str
    status: FeeStatus
    due_date: date
    paid_date: Optional[date] = None
    remarks: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
