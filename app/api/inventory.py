from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from app.api.deps import get_current_user, require_admin_user
from app.api.responses import ok, raise_for
from app.core.database import get_db
from app.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from app.models import User
from app.schemas import AdjustStockRequest, CheckStockRequest, RestockRequest
from app.services import inventory as inventory_service

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _raise_for_stock(result: dict) -> dict:
    status_code = 404 if result.get("error") == inventory_service.PRODUCT_NOT_FOUND else 400
    return raise_for(result, status_code)


@router.get("/product/{product_id}/history")
@limiter.limit(READ_LIMIT)
def product_history(
    request: Request,
    product_id: int,
    limit: int = Query(50, ge=1, le=500),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = inventory_service.get_product_history(db, product_id, limit=limit)
    return ok("Historial de producto obtenido exitosamente", {"history": result["history"]})


@router.get("/recent-movements")
@limiter.limit(READ_LIMIT)
def recent_movements(
    request: Request,
    limit: int = Query(100, ge=1, le=500),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = inventory_service.get_recent_movements(db, limit=limit)
    return ok("Movimientos recientes obtenidos exitosamente", {"movements": result["movements"]})


@router.get("/stats")
@limiter.limit(READ_LIMIT)
def inventory_stats(
    request: Request,
    product_id: int | None = Query(None),
    days: int = Query(30, ge=1, le=365),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = inventory_service.get_inventory_stats(db, product_id=product_id, days=days)
    return ok("Estadísticas de inventario obtenidas exitosamente", {"stats": result["stats"]})


@router.post("/check-stock/{product_id}")
@limiter.limit(WRITE_LIMIT)
def check_stock(
    request: Request,
    product_id: int,
    body: CheckStockRequest,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = _raise_for_stock(inventory_service.check_stock(db, product_id, body.quantity))
    result.pop("success")
    return ok("Stock verificado exitosamente", result)


@router.get("/low-stock")
@limiter.limit(READ_LIMIT)
def low_stock(
    request: Request,
    threshold: int | None = Query(None, ge=0),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = inventory_service.get_low_stock_products(db, threshold=threshold)
    return ok(
        "Productos con stock bajo obtenidos exitosamente",
        {"products": result["products"], "threshold": result["threshold"]},
    )


@router.get("/dashboard")
@limiter.limit(READ_LIMIT)
def inventory_dashboard(
    request: Request,
    days: int = Query(30, ge=1, le=365),
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = inventory_service.get_inventory_dashboard(db, days=days)
    return ok("Dashboard de inventario obtenido exitosamente", result["data"])


@router.post("/adjust-stock/{product_id}")
@limiter.limit(WRITE_LIMIT)
def adjust_stock(
    request: Request,
    product_id: int,
    body: AdjustStockRequest,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = inventory_service.set_stock(
        db, product_id, body.new_stock, admin.id, reason=body.reason, notes=body.notes
    )
    _raise_for_stock(result)
    return ok(
        "Stock ajustado exitosamente",
        {"inventory_record": result["inventory_record"], "product": result["product"]},
    )


@router.post("/restock/{product_id}")
@limiter.limit(WRITE_LIMIT)
def restock(
    request: Request,
    product_id: int,
    body: RestockRequest,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = inventory_service.restock(
        db, product_id, body.quantity, admin.id, reason=body.reason, order_id=body.order_id
    )
    _raise_for_stock(result)
    return ok(
        "Stock restaurado exitosamente",
        {"inventory_record": result["inventory_record"], "product": result["product"]},
    )


@router.get("/product/{product_id}/reconcile")
@limiter.limit(READ_LIMIT)
def reconcile_product(
    request: Request,
    product_id: int,
    _: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = _raise_for_stock(inventory_service.reconcile_product(db, product_id))
    result.pop("success")
    return ok("Conciliación de inventario completada", result)
