"""Motor de cupones: validación contra una orden, cálculo de descuento y libro de usos."""
import logging
from datetime import timedelta

from sqlalchemy import distinct, func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.models import Coupon, CouponType, CouponUsage, Order, User
from app.schemas.coupon import CouponCreate, CouponUpdate
from app.schemas.order import OrderSnapshot

log = logging.getLogger("ropastore.coupons")

ALREADY_USED = "Ya has usado este cupón anteriormente"
NOT_FOUND = "Cupón no encontrado"

# Campos que un admin puede tocar; code, type y used_count quedan fijos
UPDATABLE_FIELDS = (
    "name",
    "description",
    "value",
    "min_order_amount",
    "max_discount_amount",
    "usage_limit",
    "is_active",
    "valid_from",
    "valid_until",
    "applicable_products",
    "applicable_categories",
    "applicable_users",
)
NULLABLE_FIELDS = ("description", "max_discount_amount", "usage_limit")


def normalize_code(code: str | None) -> str:
    return (code or "").strip().upper()


def find_by_code(db: Session, code: str) -> Coupon | None:
    """Solo cupones activos; la búsqueda no distingue mayúsculas."""
    code_upper = normalize_code(code)
    if not code_upper:
        return None
    stmt = select(Coupon).where(Coupon.code == code_upper, Coupon.is_active == True)  # noqa: E712
    return db.exec(stmt).first()


def coupon_to_dict(coupon: Coupon) -> dict:
    data = coupon.model_dump()
    data["is_valid"] = coupon.is_valid
    data["is_expired"] = coupon.is_expired
    data["is_usage_limit_reached"] = coupon.is_usage_limit_reached
    return data


def _summary(coupon: Coupon, discount_amount: float) -> dict:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "name": coupon.name,
        "type": coupon.type,
        "value": coupon.value,
        "discount_amount": discount_amount,
    }


def create_coupon(db: Session, data: CouponCreate, created_by: int) -> dict:
    payload = data.model_dump(exclude_none=True)
    payload["type"] = data.type.value
    coupon = Coupon(**payload, created_by=created_by)
    db.add(coupon)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"success": False, "error": "El código del cupón ya existe"}
    db.refresh(coupon)
    log.info("Cupón creado: coupon_id=%s code=%s created_by=%s", coupon.id, coupon.code, created_by)
    return {"success": True, "coupon": coupon}


def get_all_coupons(db: Session, is_active: bool | None = None, coupon_type: str | None = None) -> dict:
    stmt = select(Coupon)
    if is_active is not None:
        stmt = stmt.where(Coupon.is_active == is_active)
    if coupon_type:
        stmt = stmt.where(Coupon.type == coupon_type)
    coupons = list(db.exec(stmt.order_by(Coupon.created_at.desc(), Coupon.id.desc())).all())
    return {"success": True, "coupons": coupons}


def get_coupon_by_id(db: Session, coupon_id: int) -> dict:
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        return {"success": False, "error": NOT_FOUND}
    return {"success": True, "coupon": coupon}


def get_coupon_by_code(db: Session, code: str) -> dict:
    """Vista pública de un cupón activo (sin chequear una orden)."""
    coupon = find_by_code(db, code)
    if not coupon:
        return {"success": False, "error": NOT_FOUND}
    return {
        "success": True,
        "coupon": {
            "id": coupon.id,
            "code": coupon.code,
            "name": coupon.name,
            "description": coupon.description,
            "type": coupon.type,
            "value": coupon.value,
            "min_order_amount": coupon.min_order_amount,
            "max_discount_amount": coupon.max_discount_amount,
            "valid_until": coupon.valid_until,
            "is_valid": coupon.is_valid,
        },
    }


def update_coupon(db: Session, coupon_id: int, data: CouponUpdate, user_id: int) -> dict:
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        return {"success": False, "error": NOT_FOUND}
    changes = data.model_dump(exclude_unset=True)
    for field in UPDATABLE_FIELDS:
        if field not in changes:
            continue
        # null solo borra los campos opcionales (tope, límite, descripción)
        if changes[field] is None and field not in NULLABLE_FIELDS:
            continue
        setattr(coupon, field, changes[field])
    if coupon.valid_until < coupon.valid_from:
        db.rollback()
        return {"success": False, "error": "La fecha de vencimiento debe ser posterior a la de inicio"}
    if coupon.type == CouponType.percentage and coupon.value > 100:
        db.rollback()
        return {"success": False, "error": "El porcentaje no puede ser mayor a 100"}
    if coupon.usage_limit is not None and coupon.usage_limit < (coupon.used_count or 0):
        db.rollback()
        return {"success": False, "error": "El límite de uso no puede ser menor a los usos registrados"}
    db.add(coupon)
    db.commit()
    db.refresh(coupon)
    log.info("Cupón actualizado: coupon_id=%s updated_by=%s fields=%s", coupon_id, user_id, sorted(changes))
    return {"success": True, "coupon": coupon}


def delete_coupon(db: Session, coupon_id: int, user_id: int) -> dict:
    """Soft delete: el historial de usos sigue apuntando al cupón."""
    coupon = db.get(Coupon, coupon_id)
    if not coupon:
        return {"success": False, "error": NOT_FOUND}
    coupon.is_active = False
    db.add(coupon)
    db.commit()
    log.info("Cupón desactivado: coupon_id=%s deactivated_by=%s", coupon_id, user_id)
    return {"success": True, "message": "Cupón desactivado exitosamente"}


def has_user_used_coupon(db: Session, coupon_id: int, user_id: int) -> bool:
    stmt = select(CouponUsage.id).where(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == user_id)
    return db.exec(stmt).first() is not None


def validate_and_apply_coupon(db: Session, code: str, order: OrderSnapshot, user_id: int) -> dict:
    """
    Valida el cupón contra la orden y calcula el descuento. Solo lectura:
    no escribe usos (eso es apply_coupon_to_order), sirve para previsualizar.
    """
    coupon = find_by_code(db, code)
    if not coupon:
        return {"success": False, "error": NOT_FOUND}

    applicability = coupon.is_applicable_to_order(order)
    if not applicability["valid"]:
        return {"success": False, "error": applicability["reason"]}

    if coupon.applicable_users and user_id not in coupon.applicable_users:
        return {"success": False, "error": "Cupón no disponible para este usuario"}

    # Un uso por usuario, en cualquier orden
    if has_user_used_coupon(db, coupon.id, user_id):
        return {"success": False, "error": ALREADY_USED}

    discount_amount = coupon.calculate_discount(order)
    return {"success": True, "coupon": _summary(coupon, discount_amount)}


def apply_coupon_to_order(
    db: Session,
    code: str,
    order_id: int,
    user_id: int,
    order: OrderSnapshot,
    commit: bool = True,
) -> dict:
    """
    Escribe el uso del cupón para la orden e incrementa used_count.
    Con commit=False queda dentro de la transacción del llamador (checkout).
    Un (cupón, orden) repetido lo rechaza el índice único; en ese caso la
    transacción se revierte entera y se devuelve el error de dominio.
    """
    validation = validate_and_apply_coupon(db, code, order, user_id)
    if not validation["success"]:
        return validation

    target = db.get(Order, order_id)
    if not target or target.user_id != user_id:
        return {"success": False, "error": "Orden no encontrada"}

    applied = validation["coupon"]
    order_total = order.total
    if order_total is None:
        order_total = max(0.0, order.subtotal + order.shipping_cost - applied["discount_amount"])
    now = utcnow()
    usage = CouponUsage(
        coupon_id=applied["id"],
        user_id=user_id,
        order_id=order_id,
        discount_amount=applied["discount_amount"],
        order_subtotal=order.subtotal,
        order_total=order_total,
        used_at=now,
    )
    db.add(usage)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        log.warning(
            "Uso duplicado rechazado: coupon_id=%s order_id=%s user_id=%s", applied["id"], order_id, user_id
        )
        return {"success": False, "error": ALREADY_USED}

    # Incremento atómico en SQL; el WHERE corta la carrera contra usage_limit
    result = db.exec(
        update(Coupon)
        .where(
            Coupon.id == applied["id"],
            or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
        )
        .values(used_count=Coupon.used_count + 1, last_used_at=now)
    )
    if result.rowcount == 0:
        db.rollback()
        return {"success": False, "error": "Cupón ha alcanzado su límite de uso"}

    if commit:
        db.commit()
        db.refresh(usage)

    log.info(
        "Cupón aplicado: coupon_id=%s order_id=%s user_id=%s discount=%s",
        applied["id"],
        order_id,
        user_id,
        applied["discount_amount"],
    )
    return {"success": True, "coupon": applied, "usage": usage}


def get_coupon_stats(db: Session, coupon_id: int | None = None, days: int = 30) -> dict:
    start = utcnow() - timedelta(days=days)
    total_uses = func.count(CouponUsage.id)
    stmt = (
        select(
            CouponUsage.coupon_id,
            Coupon.code,
            Coupon.name,
            total_uses,
            func.sum(CouponUsage.discount_amount),
            func.avg(CouponUsage.discount_amount),
            func.count(distinct(CouponUsage.user_id)),
            func.max(CouponUsage.used_at),
        )
        .join(Coupon, Coupon.id == CouponUsage.coupon_id)
        .where(CouponUsage.used_at >= start)
    )
    if coupon_id is not None:
        stmt = stmt.where(CouponUsage.coupon_id == coupon_id)
    stmt = stmt.group_by(CouponUsage.coupon_id, Coupon.code, Coupon.name).order_by(total_uses.desc())

    stats = [
        {
            "coupon_id": cid,
            "coupon_code": code,
            "coupon_name": name,
            "total_uses": uses,
            "total_discount": round(total or 0, 2),
            "average_discount": round(avg or 0, 2),
            "unique_users": users,
            "last_used": last_used,
        }
        for cid, code, name, uses, total, avg, users, last_used in db.exec(stmt).all()
    ]
    return {"success": True, "stats": stats}


def get_coupon_usage_history(db: Session, coupon_id: int, limit: int = 50) -> dict:
    stmt = (
        select(CouponUsage, User.email, Order.order_number, Order.total)
        .join(User, User.id == CouponUsage.user_id, isouter=True)
        .join(Order, Order.id == CouponUsage.order_id, isouter=True)
        .where(CouponUsage.coupon_id == coupon_id)
        .order_by(CouponUsage.used_at.desc(), CouponUsage.id.desc())
        .limit(limit)
    )
    history = [
        {**usage.model_dump(), "user_email": email, "order_number": order_number, "order_total_now": total}
        for usage, email, order_number, total in db.exec(stmt).all()
    ]
    return {"success": True, "history": history}


def get_valid_coupons_for_user(db: Session, user_id: int) -> dict:
    now = utcnow()
    stmt = select(Coupon).where(
        Coupon.is_active == True,  # noqa: E712
        Coupon.valid_from <= now,
        Coupon.valid_until >= now,
        or_(Coupon.usage_limit.is_(None), Coupon.used_count < Coupon.usage_limit),
    )
    coupons = [
        c for c in db.exec(stmt.order_by(Coupon.valid_until)).all()
        if not c.applicable_users or user_id in c.applicable_users
    ]
    return {"success": True, "coupons": coupons}
