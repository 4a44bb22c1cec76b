from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, Relationship, SQLModel

from app.core.clock import utcnow

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled", "returned")


class Order(SQLModel, table=True):
    """
    Orden de compra. El cupón queda congelado (código/nombre/monto) al crearla;
    nunca se recalcula desde el Coupon vivo.
    """

    __tablename__ = "orders"

    id: int | None = Field(default=None, primary_key=True)
    order_number: str = Field(unique=True, index=True, max_length=40)  # ORD-<ms>-<9 chars>
    user_id: int = Field(foreign_key="user.id", index=True)
    status: str = Field(default="pending", index=True, max_length=16)
    subtotal: float = Field(default=0.0, ge=0)
    shipping_cost: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)
    total: float = Field(default=0.0, ge=0)
    coupon_code: str | None = Field(default=None, max_length=20)
    coupon_name: str | None = Field(default=None, max_length=100)
    coupon_discount: float | None = None
    payment_method: str = Field(default="cash", max_length=16)  # cash | stripe
    tracking_number: str | None = Field(default=None, max_length=64)
    shipping_address: dict | None = Field(default=None, sa_column=Column(JSON))
    cancellation_reason: str | None = None
    shipped_at: datetime | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = Field(default_factory=utcnow, index=True)
    updated_at: datetime | None = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})

    items: list["OrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "selectin"},
    )


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_item"

    id: int | None = Field(default=None, primary_key=True)
    order_id: int | None = Field(default=None, foreign_key="orders.id", index=True)
    product_id: int = Field(foreign_key="product.id", index=True)
    quantity: int = Field(ge=1)
    price: float = Field(ge=0)  # precio unitario al momento de la compra
    total: float = Field(ge=0)

    order: Order | None = Relationship(back_populates="items")
