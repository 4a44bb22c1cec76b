from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from app.api.deps import get_current_user, require_admin_user
from app.api.responses import ok, raise_for
from app.core.config import ADMIN_ROLES
from app.core.database import get_db
from app.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from app.models import Order, User
from app.schemas import OrderCreate, OrderReturnRequest, OrderStatusUpdate
from app.services import orders as order_service

router = APIRouter(prefix="/orders", tags=["orders"])


def _order_out(order: Order) -> dict:
    data = order.model_dump()
    data["items"] = [item.model_dump(exclude={"order_id"}) for item in order.items]
    return data


@router.post("/", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_order(
    request: Request,
    body: OrderCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = raise_for(order_service.create_order(db, body, user.id, user_email=user.email))
    return ok("Orden creada exitosamente", {"order": _order_out(result["order"])})


@router.get("/my-orders")
@limiter.limit(READ_LIMIT)
def my_orders(
    request: Request,
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = order_service.get_user_orders(db, user.id, status=status, page=page, limit=limit)
    return ok(
        "Órdenes obtenidas exitosamente",
        {"orders": [_order_out(o) for o in result["orders"]], "pagination": result["pagination"]},
    )


@router.get("/")
@limiter.limit(READ_LIMIT)
def all_orders(
    request: Request,
    status: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    _: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = order_service.get_all_orders(db, status=status, page=page, limit=limit)
    return ok(
        "Todas las órdenes obtenidas exitosamente",
        {"orders": [_order_out(o) for o in result["orders"]], "pagination": result["pagination"]},
    )


@router.get("/{order_id}")
@limiter.limit(READ_LIMIT)
def get_order(
    request: Request,
    order_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = raise_for(order_service.get_order_by_id(db, order_id, user.id, is_admin=user.role in ADMIN_ROLES))
    return ok("Orden obtenida exitosamente", {"order": _order_out(result["order"])})


@router.put("/{order_id}/status")
@limiter.limit(WRITE_LIMIT)
def update_status(
    request: Request,
    order_id: int,
    body: OrderStatusUpdate,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = raise_for(
        order_service.update_order_status(
            db,
            order_id,
            body.status,
            admin.id,
            tracking_number=body.tracking_number,
            cancellation_reason=body.cancellation_reason,
        )
    )
    return ok("Estado de orden actualizado exitosamente", {"order": _order_out(result["order"])})


@router.post("/{order_id}/return")
@limiter.limit(WRITE_LIMIT)
def return_order(
    request: Request,
    order_id: int,
    body: OrderReturnRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = raise_for(order_service.process_order_return(db, order_id, body, user.id))
    return ok("Devolución procesada exitosamente", {"order": _order_out(result["order"])})
