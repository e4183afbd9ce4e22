from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date, datetime
from enum import Enum

from school_ledger.models.inventory import TransactionType

DateType = date


class StockMovement(str, Enum):
    """Movements a caller may record directly; ADJUSTMENT comes from item edits"""
    IN = "IN"
    OUT = "OUT"


# ============== Item Schemas ==============

class ItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    quantity: int = Field(0, ge=0, description="Opening stock")
    unit: str = Field(..., min_length=1, max_length=30)


class ItemUpdate(BaseModel):
    """A new quantity is recorded as an ADJUSTMENT transaction"""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    quantity: Optional[int] = Field(None, ge=0)
    unit: Optional[str] = Field(None, min_length=1, max_length=30)
    reason: Optional[str] = None


class ItemResponse(BaseModel):
    id: str
    name: str
    category: str
    description: Optional[str] = None
    quantity: int
    unit: str
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ============== Transaction Schemas ==============

class TransactionCreate(BaseModel):
    item_id: str = Field(..., min_length=1)
    type: StockMovement
    quantity: int = Field(..., gt=0)
    date: Optional[DateType] = Field(None, description="Defaults to today")
    remarks: Optional[str] = None
    reference_no: Optional[str] = Field(None, max_length=100)


class TransactionResponse(BaseModel):
    id: str
    item_id: str
    type: TransactionType
    quantity: int
    date: DateType
    remarks: Optional[str] = None
    reference_no: Optional[str] = None
    performed_by: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class TransactionResult(BaseModel):
    transaction: TransactionResponse
    item: ItemResponse


# ============== Summary ==============

class TransactionCounts(BaseModel):
    IN: int = 0
    OUT: int = 0
    ADJUSTMENT: int = 0


class InventorySummary(BaseModel):
    total_items: int
    total_quantity: int
    low_stock_items: int
    out_of_stock_items: int
    low_stock_threshold: int
    transactions: TransactionCounts
    recent_transactions: List[TransactionResponse]
