from sqlalchemy import Column, String, Integer, Date, DateTime, ForeignKey, Text, CheckConstraint
import enum

from school_ledger.core.database import Base
from school_ledger.core.types import GUID, generate_uuid, enum_column, utcnow


class TransactionType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    ADJUSTMENT = "ADJUSTMENT"


class InventoryItem(Base):
    __tablename__ = "inventory_items"
    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_item_quantity_nonnegative"),
    )

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), unique=True, index=True, nullable=False)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, default=0, nullable=False)
    unit = Column(String(30), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<InventoryItem {self.name} x{self.quantity}>"


class InventoryTransaction(Base):
    """
    Stock movement. ``quantity`` is a positive magnitude for IN and OUT and
    the signed correction for ADJUSTMENT.
    """
    __tablename__ = "inventory_transactions"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    item_id = Column(GUID, ForeignKey("inventory_items.id"), index=True, nullable=False)
    type = Column(enum_column(TransactionType), nullable=False)
    quantity = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    remarks = Column(Text, nullable=True)
    reference_no = Column(String(100), nullable=True)
    performed_by = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def delta(self) -> int:
        """Signed effect on the item's quantity"""
        if self.type == TransactionType.OUT:
            return -self.quantity
        return self.quantity

    def __repr__(self):
        return f"<InventoryTransaction {self.type} {self.quantity} of {self.item_id}>"
