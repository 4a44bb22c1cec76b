from typing import Literal

from pydantic import BaseModel, Field


class SnapshotItem(BaseModel):
    product_id: int
    category: str | None = None
    quantity: int = 1
    price: float = 0.0
    total: float = 0.0


class OrderSnapshot(BaseModel):
    """Lo que el motor de cupones ve de una orden: subtotal, líneas y envío."""
    subtotal: float = Field(ge=0)
    items: list[SnapshotItem] = Field(default_factory=list)
    shipping_cost: float = 0.0
    total: float | None = None


class ShippingAddress(BaseModel):
    first_name: str = "Usuario"
    last_name: str = "Cliente"
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    phone: str | None = None
    email: str | None = None


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class OrderCreate(BaseModel):
    items: list[OrderItemIn] = Field(default_factory=list)
    coupon_code: str | None = None
    payment_method: Literal["cash", "stripe"] = "cash"
    shipping_address: ShippingAddress | None = None


class OrderStatusUpdate(BaseModel):
    status: str
    tracking_number: str | None = None
    cancellation_reason: str | None = None


class ReturnItem(BaseModel):
    product_id: int
    quantity: int = Field(ge=1)


class OrderReturnRequest(BaseModel):
    items: list[ReturnItem] = Field(min_length=1)
    reason: str | None = None
