"""
Inventory Service - items and stock movements

An item's quantity equals the signed sum of its transactions:
IN adds, OUT subtracts, ADJUSTMENT carries its own sign. Opening stock and
admin quantity edits are recorded as ADJUSTMENT rows so the sum always holds.
"""

from datetime import date
from sqlalchemy import select, func, or_, delete
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Tuple

from school_ledger.core.config import settings
from school_ledger.core.database import run_in_transaction
from school_ledger.core.exceptions import (
    ConflictError,
    InsufficientQuantityError,
    InventoryItemNotFoundError,
    TransactionNotFoundError,
)
from school_ledger.core.logging_config import logger
from school_ledger.models import InventoryItem, InventoryTransaction, TransactionType
from school_ledger.schemas.inventory import ItemCreate, ItemUpdate, StockMovement, TransactionCreate
from school_ledger.services.ledger_service import LedgerOperation, fetch_subject, ledger_service
from school_ledger.utils.dates import school_today
from school_ledger.utils.pagination import PaginationParams, paginate


def _insufficient(requested: int):
    def _error(current: Optional[int]) -> InsufficientQuantityError:
        return InsufficientQuantityError(available=current or 0, requested=requested)
    return _error


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[str] = None) -> bool:
    query = select(InventoryItem.id).where(func.lower(InventoryItem.name) == name.lower())
    if exclude_id:
        query = query.where(InventoryItem.id != exclude_id)
    return bool(await db.scalar(query))


# ==================== LEDGER OPERATIONS ====================

class RecordMovement(LedgerOperation[Tuple[InventoryTransaction, InventoryItem]]):
    """Stock-in is always legal; stock-out needs quantity >= requested"""
    kind = "inventory_movement"

    def __init__(self, data: TransactionCreate, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.data = data

    def subject_id(self) -> str:
        return self.data.item_id

    async def load(self, db: AsyncSession) -> None:
        self.item = await fetch_subject(db, InventoryItem, self.data.item_id, InventoryItemNotFoundError)

    async def check(self, db: AsyncSession) -> None:
        if self.data.type == StockMovement.OUT and self.item.quantity < self.data.quantity:
            raise InsufficientQuantityError(available=self.item.quantity, requested=self.data.quantity)

    async def write(self, db: AsyncSession) -> Tuple[InventoryTransaction, InventoryItem]:
        transaction = InventoryTransaction(
            item_id=self.item.id,
            type=TransactionType(self.data.type.value),
            quantity=self.data.quantity,
            date=self.data.date or school_today(),
            remarks=self.data.remarks,
            reference_no=self.data.reference_no,
            performed_by=self.performed_by,
        )
        db.add(transaction)
        await db.flush()

        item = await self.change(
            db, InventoryItem, self.item.id, "quantity", transaction.delta,
            _insufficient(self.data.quantity),
        )
        return transaction, item


class ReverseMovement(LedgerOperation[InventoryItem]):
    """Delete a transaction and undo its effect, never driving stock negative"""
    kind = "inventory_reverse"

    def __init__(self, transaction_id: str, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.transaction_id = transaction_id

    def subject_id(self) -> str:
        return self.transaction_id

    async def load(self, db: AsyncSession) -> None:
        self.transaction = await fetch_subject(
            db, InventoryTransaction, self.transaction_id, TransactionNotFoundError
        )
        self.item = await fetch_subject(db, InventoryItem, self.transaction.item_id, InventoryItemNotFoundError)

    async def write(self, db: AsyncSession) -> InventoryItem:
        reversal = -self.transaction.delta
        await db.execute(delete(InventoryTransaction).where(InventoryTransaction.id == self.transaction.id))
        item = self.item
        if reversal:
            item = await self.change(
                db, InventoryItem, item.id, "quantity", reversal, _insufficient(-reversal),
            )
        return item


class AdjustItem(LedgerOperation[InventoryItem]):
    """Item edit; a new quantity is written as a signed ADJUSTMENT transaction"""
    kind = "inventory_adjust"

    def __init__(self, item_id: str, data: ItemUpdate, performed_by: Optional[str] = None):
        super().__init__(performed_by)
        self.item_id = item_id
        self.data = data

    def subject_id(self) -> str:
        return self.item_id

    async def load(self, db: AsyncSession) -> None:
        self.item = await fetch_subject(db, InventoryItem, self.item_id, InventoryItemNotFoundError)

    async def check(self, db: AsyncSession) -> None:
        if self.data.name and await _name_taken(db, self.data.name, exclude_id=self.item.id):
            raise ConflictError("An item with this name already exists", details={"name": self.data.name})

    async def write(self, db: AsyncSession) -> InventoryItem:
        item = self.item
        for field in ("name", "category", "description", "unit"):
            value = getattr(self.data, field)
            if value is not None:
                setattr(item, field, value)
        await db.flush()

        if self.data.quantity is None or self.data.quantity == item.quantity:
            return item

        delta = self.data.quantity - item.quantity
        db.add(InventoryTransaction(
            item_id=item.id,
            type=TransactionType.ADJUSTMENT,
            quantity=delta,
            date=school_today(),
            remarks=self.data.reason or "Quantity corrected",
            performed_by=self.performed_by,
        ))
        await db.flush()
        return await self.change(db, InventoryItem, item.id, "quantity", delta, _insufficient(-delta))


# ==================== SERVICE ====================

class InventoryService:
    """Service for inventory items and transactions"""

    async def create_item(
        self, db: AsyncSession, data: ItemCreate, performed_by: Optional[str] = None
    ) -> InventoryItem:
        async def _work(session: AsyncSession) -> InventoryItem:
            if await _name_taken(session, data.name):
                raise ConflictError("An item with this name already exists", details={"name": data.name})
            item = InventoryItem(
                name=data.name,
                category=data.category,
                description=data.description,
                quantity=data.quantity,
                unit=data.unit,
            )
            session.add(item)
            await session.flush()
            if data.quantity:
                session.add(InventoryTransaction(
                    item_id=item.id,
                    type=TransactionType.ADJUSTMENT,
                    quantity=data.quantity,
                    date=school_today(),
                    remarks="Opening stock",
                    performed_by=performed_by,
                ))
                await session.flush()
            return item

        item = await run_in_transaction(db, _work)
        logger.log_ledger_event("inventory_open", item.id, delta=item.quantity, performed_by=performed_by)
        return item

    async def get_item(self, db: AsyncSession, item_id: str) -> InventoryItem:
        return await fetch_subject(db, InventoryItem, item_id, InventoryItemNotFoundError, lock=False)

    async def list_items(
        self,
        db: AsyncSession,
        params: PaginationParams,
        search: Optional[str] = None,
        category: Optional[str] = None,
        low_stock: bool = False,
    ) -> dict:
        query = select(InventoryItem).order_by(InventoryItem.name)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(InventoryItem.name).like(pattern),
                func.lower(InventoryItem.description).like(pattern),
            ))
        if category:
            query = query.where(InventoryItem.category == category)
        if low_stock:
            query = query.where(InventoryItem.quantity < settings.LOW_STOCK_THRESHOLD)
        return await paginate(db, query, params)

    async def update_item(
        self, db: AsyncSession, item_id: str, data: ItemUpdate, performed_by: Optional[str] = None
    ) -> InventoryItem:
        return await ledger_service.apply(db, AdjustItem(item_id, data, performed_by))

    async def delete_item(self, db: AsyncSession, item_id: str) -> None:
        """Blocked once the item has any transaction history"""
        async def _work(session: AsyncSession) -> None:
            item = await fetch_subject(session, InventoryItem, item_id, InventoryItemNotFoundError)
            history = await session.scalar(
                select(func.count()).select_from(InventoryTransaction).where(InventoryTransaction.item_id == item.id)
            )
            if history:
                raise ConflictError(
                    "Cannot delete an item with transaction history",
                    details={"item_id": item.id, "transactions": history},
                )
            await session.execute(delete(InventoryItem).where(InventoryItem.id == item.id))

        await run_in_transaction(db, _work)
        logger.info(f"Deleted inventory item {item_id}")

    async def record_transaction(
        self, db: AsyncSession, data: TransactionCreate, performed_by: Optional[str] = None
    ) -> Tuple[InventoryTransaction, InventoryItem]:
        return await ledger_service.apply(db, RecordMovement(data, performed_by))

    async def delete_transaction(
        self, db: AsyncSession, transaction_id: str, performed_by: Optional[str] = None
    ) -> InventoryItem:
        return await ledger_service.apply(db, ReverseMovement(transaction_id, performed_by))

    async def get_transaction(self, db: AsyncSession, transaction_id: str) -> InventoryTransaction:
        return await fetch_subject(db, InventoryTransaction, transaction_id, TransactionNotFoundError, lock=False)

    async def list_transactions(
        self,
        db: AsyncSession,
        params: PaginationParams,
        item_id: Optional[str] = None,
        type: Optional[TransactionType] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> dict:
        query = select(InventoryTransaction).order_by(
            InventoryTransaction.date.desc(), InventoryTransaction.created_at.desc()
        )
        if item_id:
            query = query.where(InventoryTransaction.item_id == item_id)
        if type is not None:
            query = query.where(InventoryTransaction.type == type)
        if start_date:
            query = query.where(InventoryTransaction.date >= start_date)
        if end_date:
            query = query.where(InventoryTransaction.date <= end_date)
        return await paginate(db, query, params)

    async def get_summary(self, db: AsyncSession) -> dict:
        threshold = settings.LOW_STOCK_THRESHOLD

        total_items, total_quantity = (await db.execute(
            select(func.count(InventoryItem.id), func.coalesce(func.sum(InventoryItem.quantity), 0))
        )).one()
        low_stock = await db.scalar(
            select(func.count()).select_from(InventoryItem).where(InventoryItem.quantity < threshold)
        )
        out_of_stock = await db.scalar(
            select(func.count()).select_from(InventoryItem).where(InventoryItem.quantity == 0)
        )

        counts = {t.value: 0 for t in TransactionType}
        rows = await db.execute(
            select(InventoryTransaction.type, func.count()).group_by(InventoryTransaction.type)
        )
        for tx_type, count in rows.all():
            counts[TransactionType(tx_type).value] = count

        recent = (await db.execute(
            select(InventoryTransaction)
            .order_by(InventoryTransaction.date.desc(), InventoryTransaction.created_at.desc())
            .limit(5)
        )).scalars().all()

        return {
            "total_items": total_items,
            "total_quantity": int(total_quantity),
            "low_stock_items": low_stock,
            "out_of_stock_items": out_of_stock,
            "low_stock_threshold": threshold,
            "transactions": counts,
            "recent_transactions": list(recent),
        }


inventory_service = InventoryService()
