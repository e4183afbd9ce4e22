"""
Class and Student Schemas - Request/Response models for enrolment and bulk import
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import date, datetime


# ============== Class Schemas ==============

class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    section: str = Field(..., min_length=1, max_length=20)
    academic_year: str = Field(..., min_length=4, max_length=20, description="e.g. 2024-2025")


class ClassResponse(BaseModel):
    id: str
    name: str
    section: str
    academic_year: str
    created_at: datetime

    class Config:
        from_attributes = True


class ClassBrief(BaseModel):
    id: str
    name: str
    section: str

    class Config:
        from_attributes = True


# ============== Student Schemas ==============

class StudentCreate(BaseModel):
    """Create the login account and the student profile together"""
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=8)
    admission_no: str = Field(..., min_length=1, max_length=50)
    class_id: str
    roll_no: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=20)
    parent_name: Optional[str] = Field(None, max_length=255)
    parent_phone: Optional[str] = Field(None, max_length=30)
    parent_email: Optional[EmailStr] = None
    address: Optional[str] = None


class StudentUserBrief(BaseModel):
    id: str
    name: str
    email: str

    class Config:
        from_attributes = True


class StudentResponse(BaseModel):
    id: str
    admission_no: str
    roll_no: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    parent_name: Optional[str] = None
    parent_phone: Optional[str] = None
    parent_email: Optional[str] = None
    address: Optional[str] = None
    class_id: str
    user: StudentUserBrief
    school_class: ClassBrief
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Import Schemas ==============

class StudentImportRequest(BaseModel):
    """
    Bulk import payload.

    ``mapping`` is ``{internal_field: source_column}``, e.g.
    ``{"name": "Student Name", "admission_no": "Adm No"}``.
    """
    mapping: Dict[str, str] = Field(default_factory=dict)
    rows: List[Dict[str, Any]] = Field(..., description="Raw rows keyed by source column")
    academic_year: str = Field(..., min_length=4, max_length=20)


class StudentImportRow(BaseModel):
    """One mapped import row; validated independently of its neighbours"""
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    admission_no: str = Field(..., min_length=1, max_length=50)
    class_name: str = Field(..., min_length=1, max_length=50)
    section: str = Field(..., min_length=1, max_length=20)
    roll_no: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = Field(None, max_length=20)
    parent_name: Optional[str] = Field(None, max_length=255)
    parent_phone: Optional[str] = Field(None, max_length=30)
    parent_email: Optional[EmailStr] = None
    address: Optional[str] = None

    @field_validator('admission_no', 'roll_no', 'parent_phone', 'class_name', 'section', mode='before')
    @classmethod
    def stringify(cls, v):
        # Spreadsheet cells often arrive as numbers
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v)) if float(v).is_integer() else str(v)
        return v


REQUIRED_IMPORT_FIELDS = ("name", "email", "admission_no", "class_name", "section")


class ImportRowError(BaseModel):
    row: int
    error: str


class BatchResultResponse(BaseModel):
    success_count: int
    failure_count: int
    errors: List[ImportRowError]
