"""
Library Schemas - books (catalogue) and assignments (loans)
"""

from pydantic import BaseModel, Field, model_validator
from typing import Optional
from datetime import date, datetime

from school_ledger.models.library import AssignmentStatus


# ============== Book Schemas ==============

class BookCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    author: str = Field(..., min_length=1, max_length=255)
    isbn: str = Field(..., min_length=1, max_length=32)
    category: str = Field(..., min_length=1, max_length=100)
    total_copies: int = Field(..., ge=1)


class BookUpdate(BaseModel):
    """Changing total_copies moves available_copies by the same amount"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    isbn: Optional[str] = Field(None, min_length=1, max_length=32)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    total_copies: Optional[int] = Field(None, ge=1)
    reason: Optional[str] = Field(None, description="Recorded with a copies adjustment")


class BookResponse(BaseModel):
    id: str
    title: str
    author: str
    isbn: str
    category: str
    total_copies: int
    available_copies: int
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============== Assignment Schemas ==============

class AssignmentCreate(BaseModel):
    book_id: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1)
    issue_date: Optional[date] = Field(None, description="Defaults to today")
    due_date: date
    remarks: Optional[str] = None


class AssignmentUpdate(BaseModel):
    status: Optional[AssignmentStatus] = None
    return_date: Optional[date] = None
    remarks: Optional[str] = None

    @model_validator(mode='after')
    def has_changes(self):
        if self.status is None and self.return_date is None and self.remarks is None:
            raise ValueError("Nothing to update")
        return self


class AssignmentResponse(BaseModel):
    id: str
    book_id: str
    student_id: str
    issue_date: date
    due_date: date
    return_date: Optional[date] = None
    status: AssignmentStatus
    remarks: Optional[str] = None
    issued_by: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
