"""
Inventory API Endpoints

- GET/POST /inventory/items, GET/PUT/DELETE /inventory/items/{id}
- GET/POST /inventory/transactions, GET/DELETE /inventory/transactions/{id}
- GET /inventory/summary
"""

from datetime import date
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from school_ledger.core.database import get_db
from school_ledger.models.inventory import TransactionType
from school_ledger.models.user import User
from school_ledger.modules.auth import Capability, require_capability
from school_ledger.schemas.inventory import (
    InventorySummary,
    ItemCreate,
    ItemResponse,
    ItemUpdate,
    TransactionCreate,
    TransactionResponse,
    TransactionResult,
)
from school_ledger.services.inventory_service import inventory_service
from school_ledger.utils.envelope import ok
from school_ledger.utils.pagination import PaginationParams, pagination_params, serialize_page

router = APIRouter(prefix="/inventory", tags=["Inventory"])


# ==================== ITEMS ====================

@router.get("/items")
async def list_items(
    search: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    low_stock: bool = Query(False),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.INVENTORY_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await inventory_service.list_items(db, params, search=search, category=category, low_stock=low_stock)
    return ok(serialize_page(page, ItemResponse), "Inventory items retrieved successfully")


@router.post("/items", status_code=status.HTTP_201_CREATED)
async def create_item(
    data: ItemCreate,
    current_user: User = Depends(require_capability(Capability.INVENTORY_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    item = await inventory_service.create_item(db, data, performed_by=str(current_user.id))
    return ok(ItemResponse.model_validate(item), "Inventory item created successfully")


@router.get("/items/{item_id}")
async def get_item(
    item_id: str,
    current_user: User = Depends(require_capability(Capability.INVENTORY_READ)),
    db: AsyncSession = Depends(get_db)
):
    item = await inventory_service.get_item(db, item_id)
    return ok(ItemResponse.model_validate(item), "Inventory item retrieved successfully")


@router.put("/items/{item_id}")
async def update_item(
    item_id: str,
    data: ItemUpdate,
    current_user: User = Depends(require_capability(Capability.INVENTORY_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    item = await inventory_service.update_item(db, item_id, data, performed_by=str(current_user.id))
    return ok(ItemResponse.model_validate(item), "Inventory item updated successfully")


@router.delete("/items/{item_id}")
async def delete_item(
    item_id: str,
    current_user: User = Depends(require_capability(Capability.INVENTORY_MANAGE)),
    db: AsyncSession = Depends(get_db)
):
    await inventory_service.delete_item(db, item_id)
    return ok(message="Inventory item deleted successfully")


# ==================== TRANSACTIONS ====================

@router.get("/transactions")
async def list_transactions(
    item_id: Optional[str] = Query(None),
    transaction_type: Optional[TransactionType] = Query(None, alias="type"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    params: PaginationParams = Depends(pagination_params),
    current_user: User = Depends(require_capability(Capability.INVENTORY_READ)),
    db: AsyncSession = Depends(get_db)
):
    page = await inventory_service.list_transactions(
        db, params, item_id=item_id, type=transaction_type, start_date=start_date, end_date=end_date
    )
    return ok(serialize_page(page, TransactionResponse), "Transactions retrieved successfully")


@router.post("/transactions", status_code=status.HTTP_201_CREATED)
async def record_transaction(
    data: TransactionCreate,
    current_user: User = Depends(require_capability(Capability.INVENTORY_TRANSACT)),
    db: AsyncSession = Depends(get_db)
):
    """Stock-in or stock-out; stock-out larger than the quantity on hand is rejected"""
    transaction, item = await inventory_service.record_transaction(db, data, performed_by=str(current_user.id))
    result = TransactionResult(
        transaction=TransactionResponse.model_validate(transaction),
        item=ItemResponse.model_validate(item),
    )
    return ok(result, "Transaction recorded successfully")


@router.get("/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    current_user: User = Depends(require_capability(Capability.INVENTORY_READ)),
    db: AsyncSession = Depends(get_db)
):
    transaction = await inventory_service.get_transaction(db, transaction_id)
    return ok(TransactionResponse.model_validate(transaction), "Transaction retrieved successfully")


@router.delete("/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    current_user: User = Depends(require_capability(Capability.INVENTORY_TRANSACT)),
    db: AsyncSession = Depends(get_db)
):
    item = await inventory_service.delete_transaction(db, transaction_id, performed_by=str(current_user.id))
    return ok({"item": ItemResponse.model_validate(item)}, "Transaction deleted and stock reversed")


# ==================== SUMMARY ====================

@router.get("/summary")
async def inventory_summary(
    current_user: User = Depends(require_capability(Capability.INVENTORY_READ)),
    db: AsyncSession = Depends(get_db)
):
    summary = await inventory_service.get_summary(db)
    summary["recent_transactions"] = [
        TransactionResponse.model_validate(t) for t in summary["recent_transactions"]
    ]
    return ok(InventorySummary(**summary), "Inventory summary retrieved successfully")
