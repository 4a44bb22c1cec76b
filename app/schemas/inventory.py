from pydantic import BaseModel, Field


class CheckStockRequest(BaseModel):
    quantity: int = Field(gt=0)


class AdjustStockRequest(BaseModel):
    """Corrección manual: new_stock es el valor absoluto final, no un delta."""
    new_stock: int = Field(ge=0)
    reason: str = Field(min_length=1, max_length=200)
    notes: str | None = Field(default=None, max_length=500)


class RestockRequest(BaseModel):
    quantity: int = Field(gt=0)
    reason: str | None = Field(default=None, max_length=200)
    order_id: int | None = None
