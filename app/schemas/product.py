from pydantic import BaseModel, Field, field_validator

from app.models.product import PRODUCT_CATEGORIES


def _check_category(v: str) -> str:
    if v not in PRODUCT_CATEGORIES:
        raise ValueError("La categoría debe ser: " + ", ".join(PRODUCT_CATEGORIES))
    return v


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    code: str = Field(min_length=3, max_length=20)
    description: str = Field(default="", max_length=500)
    category: str = "otro"
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)  # stock inicial, queda como restock en el ledger
    is_active: bool = True

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, v: str | None) -> str:
        return (v or "").strip().upper()

    @field_validator("category")
    @classmethod
    def category_known(cls, v: str) -> str:
        return _check_category(v)


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    category: str | None = None
    price: float | None = Field(default=None, ge=0)
    is_active: bool | None = None
    # Si viene, pasa por el ledger como adjustment
    stock: int | None = Field(default=None, ge=0)
    stock_reason: str | None = Field(default=None, max_length=200)

    @field_validator("category")
    @classmethod
    def category_known(cls, v: str | None) -> str | None:
        return _check_category(v) if v is not None else v
