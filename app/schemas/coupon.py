from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from app.core.clock import as_naive_utc
from app.models.coupon import CouponType
from app.models.product import PRODUCT_CATEGORIES
from app.schemas.order import OrderSnapshot


def _check_categories(v: list[str]) -> list[str]:
    invalid = [c for c in v if c not in PRODUCT_CATEGORIES]
    if invalid:
        raise ValueError(f"Categoría no válida: {', '.join(invalid)}")
    return v


class CouponCreate(BaseModel):
    code: str = Field(min_length=3, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    type: CouponType = CouponType.percentage
    value: float = Field(ge=0)
    min_order_amount: float = Field(default=0.0, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    is_active: bool = True
    valid_from: datetime | None = None
    valid_until: datetime
    applicable_products: list[int] = Field(default_factory=list)
    applicable_categories: list[str] = Field(default_factory=list)
    applicable_users: list[int] = Field(default_factory=list)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v: str | None) -> str:
        return (v or "").strip().upper()

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: str | None) -> str:
        return (v or "").strip()

    @field_validator("valid_from", "valid_until")
    @classmethod
    def to_naive_utc(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)

    @field_validator("applicable_categories")
    @classmethod
    def categories_known(cls, v: list[str]) -> list[str]:
        return _check_categories(v)

    @model_validator(mode="after")
    def check_rules(self):
        if self.type == CouponType.percentage and self.value > 100:
            raise ValueError("El porcentaje no puede ser mayor a 100.")
        if self.valid_from and self.valid_until < self.valid_from:
            raise ValueError("La fecha de vencimiento debe ser posterior a la de inicio.")
        return self


class CouponUpdate(BaseModel):
    """Todo menos code, type y used_count."""
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    value: float | None = Field(default=None, ge=0)
    min_order_amount: float | None = Field(default=None, ge=0)
    max_discount_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=1)
    is_active: bool | None = None
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    applicable_products: list[int] | None = None
    applicable_categories: list[str] | None = None
    applicable_users: list[int] | None = None

    @field_validator("valid_from", "valid_until")
    @classmethod
    def to_naive_utc(cls, v: datetime | None) -> datetime | None:
        return as_naive_utc(v)

    @field_validator("applicable_categories")
    @classmethod
    def categories_known(cls, v: list[str] | None) -> list[str] | None:
        return _check_categories(v) if v is not None else v


class CouponValidateRequest(BaseModel):
    code: str = Field(min_length=1)
    order: OrderSnapshot


class CouponApplyRequest(BaseModel):
    code: str = Field(min_length=1)
    order_id: int
    order: OrderSnapshot
