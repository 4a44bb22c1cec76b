"""Reloj único de la app: datetimes naive en UTC (igual que las columnas DateTime)."""
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    """Datetimes con zona horaria pasan a UTC naive; los naive se asumen UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
