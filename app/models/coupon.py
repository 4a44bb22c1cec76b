"""Cupón de descuento: regla con vigencia, límites de uso y alcance por producto/categoría/usuario."""
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, CheckConstraint, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow
from app.core.money import format_money, round_money


class CouponType(str, Enum):
    percentage = "percentage"
    fixed = "fixed"
    free_shipping = "free_shipping"


class Coupon(SQLModel, table=True):
    """Lo crea un admin; nunca se borra (desactivar con is_active=False) para conservar el historial de uso."""

    __table_args__ = (
        CheckConstraint("usage_limit IS NULL OR used_count <= usage_limit", name="ck_coupon_used_within_limit"),
    )

    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=20)  # siempre en mayúsculas
    name: str = Field(max_length=100)
    description: str | None = Field(default=None, max_length=500)
    type: str = Field(default=CouponType.percentage.value, max_length=16)
    value: float = Field(default=0.0, ge=0)  # percentage: puntos 0-100, fixed: monto; free_shipping lo ignora
    min_order_amount: float = Field(default=0.0, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None)  # None = ilimitado
    used_count: int = Field(default=0, ge=0)  # solo crece
    is_active: bool = Field(default=True, index=True)
    valid_from: datetime = Field(default_factory=utcnow, index=True)  # inclusive
    valid_until: datetime = Field(index=True)  # inclusive
    # Listas vacías = aplica a todos
    applicable_products: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    applicable_categories: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    applicable_users: list[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_by: int = Field(foreign_key="user.id", index=True)
    last_used_at: datetime | None = None
    created_at: datetime | None = Field(default_factory=utcnow)
    updated_at: datetime | None = Field(default_factory=utcnow, sa_column_kwargs={"onupdate": utcnow})

    @property
    def is_usage_limit_reached(self) -> bool:
        return self.usage_limit is not None and (self.used_count or 0) >= self.usage_limit

    @property
    def is_expired(self) -> bool:
        return utcnow() > self.valid_until

    @property
    def is_valid(self) -> bool:
        now = utcnow()
        return (
            bool(self.is_active)
            and self.valid_from <= now <= self.valid_until
            and not self.is_usage_limit_reached
        )

    def is_applicable_to_order(self, order, now: datetime | None = None) -> dict:
        """
        `order` es un OrderSnapshot (subtotal, items con product_id/category, shipping_cost).
        Chequeos en orden, se corta en el primer fallo.
        Devuelve {"valid": True} o {"valid": False, "reason": str}; sin efectos secundarios.
        """
        now = now or utcnow()
        if not self.is_active or self.valid_from > now or self.valid_until < now:
            return {"valid": False, "reason": "Cupón no válido o expirado"}

        if self.is_usage_limit_reached:
            return {"valid": False, "reason": "Cupón ha alcanzado su límite de uso"}

        min_amount = self.min_order_amount or 0
        if order.subtotal < min_amount:
            return {
                "valid": False,
                "reason": f"El pedido debe ser de al menos {format_money(min_amount)}",
            }

        if self.applicable_products:
            allowed = set(self.applicable_products)
            if not any(item.product_id in allowed for item in order.items):
                return {"valid": False, "reason": "Cupón no aplicable a los productos del pedido"}

        if self.applicable_categories:
            allowed_categories = set(self.applicable_categories)
            if not any(item.category in allowed_categories for item in order.items):
                return {"valid": False, "reason": "Cupón no aplicable a las categorías del pedido"}

        return {"valid": True}

    def calculate_discount(self, order) -> float:
        """Monto de descuento; llamar solo después de is_applicable_to_order."""
        discount = 0.0
        if self.type == CouponType.percentage:
            discount = order.subtotal * (self.value or 0) / 100
        elif self.type == CouponType.fixed:
            discount = self.value or 0
        elif self.type == CouponType.free_shipping:
            discount = order.shipping_cost or 0

        if self.max_discount_amount is not None and discount > self.max_discount_amount:
            discount = self.max_discount_amount

        # Nunca más que el subtotal (total negativo)
        if discount > order.subtotal:
            discount = order.subtotal

        return round_money(discount)


class CouponUsage(SQLModel, table=True):
    """Libro de usos: una fila por (cupón, orden), append-only."""

    __tablename__ = "coupon_usage"
    __table_args__ = (UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usage_coupon_order"),)

    id: int | None = Field(default=None, primary_key=True)
    coupon_id: int = Field(foreign_key="coupon.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    discount_amount: float = Field(ge=0)
    order_subtotal: float = Field(ge=0)
    order_total: float = Field(ge=0)
    used_at: datetime = Field(default_factory=utcnow, index=True)
