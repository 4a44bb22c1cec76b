from datetime import datetime

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow

PRODUCT_CATEGORIES = (
    "Camisas",
    "Pantalones",
    "Zapatos",
    "Juego de mesa",
    "Reserva",
    "Cuentos",
    "otro",
)


class Product(SQLModel, table=True):
    """
    Producto del catálogo. `stock` es el contador vivo: solo lo escribe
    app.services.inventory (cada cambio deja un InventoryMovement).
    """

    __table_args__ = (CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),)

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True, max_length=100)
    code: str = Field(unique=True, index=True, max_length=20)  # mayúsculas, ej: CAM-001
    description: str = Field(default="", max_length=500)
    category: str = Field(default="otro", index=True, max_length=32)
    price: float = Field(default=0.0, ge=0)  # redondeado a 2 decimales al escribir
    stock: int = Field(default=0, ge=0, index=True)
    is_active: bool = Field(default=True, index=True)
    created_by: int | None = Field(default=None, foreign_key="user.id")
    created_at: datetime | None = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})

    @property
    def in_stock(self) -> bool:
        return (self.stock or 0) > 0
