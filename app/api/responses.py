"""Envoltorio común de respuestas exitosas y traducción de rechazos de servicio a HTTP."""
from typing import Any

from fastapi import HTTPException

from app.core.clock import utcnow


def ok(message: str, data: Any = None) -> dict:
    return {"success": True, "message": message, "data": data, "timestamp": utcnow().isoformat()}


def raise_for(result: dict, status_code: int = 400) -> dict:
    """Devuelve `result` si el servicio tuvo éxito; si no, HTTPException con su error."""
    if not result.get("success"):
        raise HTTPException(status_code=result.get("status_code", status_code), detail=result.get("error"))
    return result
