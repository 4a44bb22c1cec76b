"""Movimiento de inventario: una fila inmutable por cada cambio de stock."""
from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, Index
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class StockAction(str, Enum):
    sale = "sale"  # resta, con piso en 0
    restock = "restock"  # suma
    adjustment = "adjustment"  # fija el stock absoluto
    returned = "return"  # suma


class InventoryMovement(SQLModel, table=True):
    __tablename__ = "inventory_movement"
    __table_args__ = (
        Index("ix_inventory_movement_product_created", "product_id", "created_at"),
        CheckConstraint("quantity >= 0", name="ck_inventory_movement_quantity_non_negative"),
        CheckConstraint("new_stock >= 0", name="ck_inventory_movement_new_stock_non_negative"),
    )

    id: int | None = Field(default=None, primary_key=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    action: str = Field(index=True, max_length=16)  # StockAction
    quantity: int = Field(ge=0)  # siempre abs() del argumento
    previous_stock: int = Field(ge=0)
    new_stock: int = Field(ge=0)
    order_id: int | None = Field(default=None, foreign_key="orders.id", index=True)  # None = ajuste manual
    user_id: int = Field(foreign_key="user.id", index=True)
    reason: str | None = Field(default=None, max_length=200)
    notes: str | None = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow, index=True)

    @property
    def stock_change(self) -> int:
        return self.new_stock - self.previous_stock
