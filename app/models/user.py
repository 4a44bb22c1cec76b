from datetime import datetime

from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class User(SQLModel, table=True):
    """Actor de cupones, órdenes y movimientos de inventario. El login vive fuera de esta API."""

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    username: str = ""
    role: str = Field(default="user", max_length=16)  # "user" | "admin" | "superuser"
    is_active: bool = True
    created_at: datetime | None = Field(default_factory=utcnow)
