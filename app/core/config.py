from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env proyecto raíz: app/core/config.py -> app/core -> app -> raíz
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

ADMIN_ROLES = ("admin", "superuser")


class Settings(BaseSettings):
    app_name: str = "RopaStore API"
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./ropastore.db"
    # CORS: lista de origins separada por comas; en producción https://tienda.cl
    cors_origins: str = "*"
    # Máximo de requests por minuto por IP (lecturas)
    rate_limit_per_minute: int = 60
    # Endpoints que escriben (validar/aplicar cupón, crear orden)
    rate_limit_write_per_minute: int = 20
    environment: str = "development"
    # Envío fijo por orden, en la moneda de la tienda
    shipping_cost: float = 5000.0
    currency: str = "clp"
    # Umbral por defecto para el listado de stock bajo
    low_stock_threshold: int = 10

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("currency", mode="before")
    @classmethod
    def lower_currency(cls, v: str | None) -> str:
        return (v or "clp").strip().lower()

    @field_validator("shipping_cost")
    @classmethod
    def shipping_not_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("SHIPPING_COST no puede ser negativo.")
        return v


settings = Settings()


def cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
