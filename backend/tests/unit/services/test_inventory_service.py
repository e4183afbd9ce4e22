"""
Unit Tests for Inventory Service
"""
import pytest
from sqlalchemy import select

from school_ledger.core.exceptions import ConflictError, InsufficientQuantityError
from school_ledger.models import InventoryTransaction, TransactionType
from school_ledger.schemas.inventory import ItemCreate, ItemUpdate, StockMovement, TransactionCreate
from school_ledger.services.inventory_service import inventory_service
from school_ledger.utils.pagination import PaginationParams


async def make_item(db, quantity=0, name="Whiteboard Marker"):
    return await inventory_service.create_item(
        db, ItemCreate(name=name, category="Stationery", quantity=quantity, unit="pcs")
    )


async def move(db, item_id, movement: StockMovement, quantity: int):
    return await inventory_service.record_transaction(
        db, TransactionCreate(item_id=item_id, type=movement, quantity=quantity)
    )


async def ledger_sum(db, item_id) -> int:
    rows = (await db.execute(
        select(InventoryTransaction).where(InventoryTransaction.item_id == item_id)
    )).scalars().all()
    return sum(t.delta for t in rows)


class TestStockMovements:

    @pytest.mark.asyncio
    async def test_opening_stock_is_a_transaction(self, db_session):
        item = await make_item(db_session, quantity=10)

        rows = (await db_session.execute(select(InventoryTransaction))).scalars().all()
        assert item.quantity == 10
        assert len(rows) == 1
        assert rows[0].type == TransactionType.ADJUSTMENT
        assert rows[0].quantity == 10

    @pytest.mark.asyncio
    async def test_in_and_out(self, db_session):
        item = await make_item(db_session, quantity=10)

        _, item = await move(db_session, item.id, StockMovement.IN, 5)
        assert item.quantity == 15

        transaction, item = await move(db_session, item.id, StockMovement.OUT, 3)
        assert item.quantity == 12
        assert transaction.delta == -3

    @pytest.mark.asyncio
    async def test_stock_out_beyond_quantity(self, db_session):
        item = await make_item(db_session, quantity=2)
        item_id = item.id

        with pytest.raises(InsufficientQuantityError) as exc_info:
            await move(db_session, item_id, StockMovement.OUT, 3)

        assert exc_info.value.details == {"available": 2, "requested": 3}
        refreshed = await inventory_service.get_item(db_session, item_id)
        assert refreshed.quantity == 2

    @pytest.mark.asyncio
    async def test_quantity_equals_signed_sum_of_transactions(self, db_session):
        item = await make_item(db_session, quantity=10)
        item_id = item.id

        await move(db_session, item_id, StockMovement.IN, 5)
        await move(db_session, item_id, StockMovement.OUT, 3)
        with pytest.raises(InsufficientQuantityError):
            await move(db_session, item_id, StockMovement.OUT, 50)
        await inventory_service.update_item(db_session, item_id, ItemUpdate(quantity=7, reason="Stock count"))

        item = await inventory_service.get_item(db_session, item_id)
        assert item.quantity == 7
        assert await ledger_sum(db_session, item_id) == 7


class TestReversal:

    @pytest.mark.asyncio
    async def test_deleting_a_transaction_reverses_it(self, db_session):
        item = await make_item(db_session, quantity=4)
        transaction, _ = await move(db_session, item.id, StockMovement.OUT, 3)

        item = await inventory_service.delete_transaction(db_session, transaction.id)

        assert item.quantity == 4
        assert await ledger_sum(db_session, item.id) == 4

    @pytest.mark.asyncio
    async def test_cannot_reverse_consumed_stock_in(self, db_session):
        item = await make_item(db_session)
        item_id = item.id
        stock_in, _ = await move(db_session, item_id, StockMovement.IN, 5)
        stock_in_id = stock_in.id
        await move(db_session, item_id, StockMovement.OUT, 5)

        with pytest.raises(InsufficientQuantityError):
            await inventory_service.delete_transaction(db_session, stock_in_id)

        assert (await inventory_service.get_transaction(db_session, stock_in_id)).quantity == 5
        assert (await inventory_service.get_item(db_session, item_id)).quantity == 0


class TestItems:

    @pytest.mark.asyncio
    async def test_duplicate_name(self, db_session):
        await make_item(db_session, name="Chalk")

        with pytest.raises(ConflictError):
            await make_item(db_session, name="chalk")

    @pytest.mark.asyncio
    async def test_delete_blocked_by_history(self, db_session):
        item = await make_item(db_session, quantity=1)

        with pytest.raises(ConflictError):
            await inventory_service.delete_item(db_session, item.id)

    @pytest.mark.asyncio
    async def test_delete_unused_item(self, db_session):
        item = await make_item(db_session)

        await inventory_service.delete_item(db_session, item.id)

        page = await inventory_service.list_items(db_session, PaginationParams(page=1, limit=10))
        assert page["pagination"]["total"] == 0

    @pytest.mark.asyncio
    async def test_summary(self, db_session):
        item = await make_item(db_session, quantity=20, name="Paper")
        await make_item(db_session, quantity=0, name="Toner")
        await move(db_session, item.id, StockMovement.OUT, 15)

        summary = await inventory_service.get_summary(db_session)

        assert summary["total_items"] == 2
        assert summary["total_quantity"] == 5
        assert summary["low_stock_items"] == 2
        assert summary["out_of_stock_items"] == 1
        assert summary["transactions"] == {"IN": 0, "OUT": 1, "ADJUSTMENT": 1}
        assert len(summary["recent_transactions"]) == 2
