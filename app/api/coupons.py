from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from app.api.deps import get_current_user, require_admin_user
from app.api.responses import ok, raise_for
from app.core.database import get_db
from app.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from app.models import CouponType, User
from app.schemas import CouponApplyRequest, CouponCreate, CouponUpdate, CouponValidateRequest
from app.services import coupon as coupon_service

router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.get("/valid")
@limiter.limit(READ_LIMIT)
def valid_coupons(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = coupon_service.get_valid_coupons_for_user(db, user.id)
    coupons = [coupon_service.coupon_to_dict(c) for c in result["coupons"]]
    return ok("Cupones válidos obtenidos exitosamente", {"coupons": coupons})


@router.get("/code/{code}")
@limiter.limit(READ_LIMIT)
def coupon_by_code(
    request: Request,
    code: str,
    _: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = raise_for(coupon_service.get_coupon_by_code(db, code), 404)
    return ok("Cupón obtenido exitosamente", {"coupon": result["coupon"]})


@router.post("/validate")
@limiter.limit(WRITE_LIMIT)
def validate_coupon(
    request: Request,
    body: CouponValidateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = raise_for(coupon_service.validate_and_apply_coupon(db, body.code, body.order, user.id))
    return ok("Cupón válido", {"coupon": result["coupon"]})


@router.post("/apply")
@limiter.limit(WRITE_LIMIT)
def apply_coupon(
    request: Request,
    body: CouponApplyRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = raise_for(
        coupon_service.apply_coupon_to_order(db, body.code, body.order_id, user.id, body.order)
    )
    return ok("Cupón aplicado exitosamente", {"coupon": result["coupon"], "usage": result["usage"]})


@router.post("/", status_code=201)
@limiter.limit(WRITE_LIMIT)
def create_coupon(
    request: Request,
    body: CouponCreate,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = raise_for(coupon_service.create_coupon(db, body, admin.id))
    return ok("Cupón creado exitosamente", {"coupon": coupon_service.coupon_to_dict(result["coupon"])})


@router.get("/")
@limiter.limit(READ_LIMIT)
def list_coupons(
    request: Request,
    is_active: bool | None = Query(None),
    type: CouponType | None = Query(None),
    _: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = coupon_service.get_all_coupons(db, is_active=is_active, coupon_type=type.value if type else None)
    coupons = [coupon_service.coupon_to_dict(c) for c in result["coupons"]]
    return ok("Cupones obtenidos exitosamente", {"coupons": coupons})


@router.get("/stats")
@limiter.limit(READ_LIMIT)
def coupon_stats(
    request: Request,
    coupon_id: int | None = Query(None),
    days: int = Query(30, ge=1, le=365),
    _: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = coupon_service.get_coupon_stats(db, coupon_id=coupon_id, days=days)
    return ok("Estadísticas de cupones obtenidas exitosamente", {"stats": result["stats"]})


@router.get("/{coupon_id}")
@limiter.limit(READ_LIMIT)
def get_coupon(
    request: Request,
    coupon_id: int,
    _: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = raise_for(coupon_service.get_coupon_by_id(db, coupon_id), 404)
    return ok("Cupón obtenido exitosamente", {"coupon": coupon_service.coupon_to_dict(result["coupon"])})


@router.put("/{coupon_id}")
@limiter.limit(WRITE_LIMIT)
def update_coupon(
    request: Request,
    coupon_id: int,
    body: CouponUpdate,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = coupon_service.update_coupon(db, coupon_id, body, admin.id)
    raise_for(result, 404 if result.get("error") == coupon_service.NOT_FOUND else 400)
    return ok("Cupón actualizado exitosamente", {"coupon": coupon_service.coupon_to_dict(result["coupon"])})


@router.delete("/{coupon_id}")
@limiter.limit(WRITE_LIMIT)
def delete_coupon(
    request: Request,
    coupon_id: int,
    admin: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = raise_for(coupon_service.delete_coupon(db, coupon_id, admin.id), 404)
    return ok(result["message"])


@router.get("/{coupon_id}/usage-history")
@limiter.limit(READ_LIMIT)
def coupon_usage_history(
    request: Request,
    coupon_id: int,
    limit: int = Query(50, ge=1, le=200),
    _: User = Depends(require_admin_user),
    db: Session = Depends(get_db),
):
    result = coupon_service.get_coupon_usage_history(db, coupon_id, limit=limit)
    return ok("Historial de uso obtenido exitosamente", {"history": result["history"]})
