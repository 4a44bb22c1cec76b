"""Checkout: una orden, su cupón y sus ventas de stock se confirman juntos o no se confirma nada."""
import logging
import math
import secrets
import string
import time

from sqlalchemy import func
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.core.config import settings
from app.core.money import round_money
from app.models import InventoryMovement, Order, OrderItem, Product, StockAction
from app.schemas.order import OrderCreate, OrderReturnRequest, OrderSnapshot, SnapshotItem
from app.services import coupon as coupon_service
from app.services import inventory as inventory_service

log = logging.getLogger("ropastore.orders")

# El estado "returned" solo lo pone process_order_return
UPDATABLE_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")

ORDER_NOT_FOUND = "Orden no encontrada"

_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(9))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def _fail(error: str, status_code: int = 400) -> dict:
    return {"success": False, "error": error, "status_code": status_code}


def create_order(db: Session, data: OrderCreate, user_id: int, user_email: str | None = None) -> dict:
    """
    Valida carrito y cupón, guarda la orden, registra el uso del cupón y
    descuenta stock por línea. Todo en una transacción: cualquier rechazo o
    excepción hace rollback y no queda orden sin sus movimientos.
    """
    if not data.items:
        return _fail("El carrito está vacío")

    # el mismo producto puede venir en varias líneas: el stock se compara contra la suma
    requested: dict[int, int] = {}
    for item in data.items:
        requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

    try:
        products: dict[int, Product] = {}
        for product_id, quantity in requested.items():
            product = db.exec(select(Product).where(Product.id == product_id).with_for_update()).first()
            if not product:
                db.rollback()
                return _fail(f"Producto no encontrado: {product_id}")
            if product.stock < quantity:
                db.rollback()
                return _fail(f"Stock insuficiente para {product.name}")
            products[product_id] = product

        lines = []
        subtotal = 0.0
        for item in data.items:
            product = products[item.product_id]
            line_total = round_money(product.price * item.quantity)
            subtotal += line_total
            lines.append((product, item.quantity, line_total))

        subtotal = round_money(subtotal)
        shipping_cost = round_money(settings.shipping_cost)
        snapshot = OrderSnapshot(
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            items=[
                SnapshotItem(
                    product_id=product.id,
                    category=product.category,
                    quantity=quantity,
                    price=product.price,
                    total=line_total,
                )
                for product, quantity, line_total in lines
            ],
        )

        discount_amount = 0.0
        applied = None
        if data.coupon_code:
            validation = coupon_service.validate_and_apply_coupon(db, data.coupon_code, snapshot, user_id)
            if not validation["success"]:
                db.rollback()
                return _fail(validation["error"])
            applied = validation["coupon"]
            discount_amount = applied["discount_amount"]

        total = round_money(max(0.0, subtotal + shipping_cost - discount_amount))
        snapshot.total = total

        address = data.shipping_address.model_dump() if data.shipping_address else {}
        if user_email and not address.get("email"):
            address["email"] = user_email

        order = Order(
            order_number=generate_order_number(),
            user_id=user_id,
            status="pending",
            subtotal=subtotal,
            shipping_cost=shipping_cost,
            discount_amount=discount_amount,
            total=total,
            coupon_code=applied["code"] if applied else None,
            coupon_name=applied["name"] if applied else None,
            coupon_discount=discount_amount if applied else None,
            payment_method=data.payment_method,
            shipping_address=address or None,
            items=[
                OrderItem(product_id=product.id, quantity=quantity, price=product.price, total=line_total)
                for product, quantity, line_total in lines
            ],
        )
        db.add(order)
        db.flush()

        if applied:
            usage = coupon_service.apply_coupon_to_order(
                db, applied["code"], order.id, user_id, snapshot, commit=False
            )
            if not usage["success"]:
                db.rollback()
                return _fail(usage["error"])

        for product, quantity, _ in lines:
            inventory_service.record_movement(
                db,
                product.id,
                StockAction.sale.value,
                quantity,
                user_id,
                order_id=order.id,
                reason="Venta realizada",
                notes=f"Orden {order.order_number}",
                commit=False,
            )

        db.commit()
    except Exception:
        db.rollback()
        log.exception("Error al crear orden: user_id=%s", user_id)
        raise

    db.refresh(order)
    log.info(
        "Orden creada: order_id=%s order_number=%s user_id=%s total=%s coupon=%s",
        order.id,
        order.order_number,
        user_id,
        order.total,
        order.coupon_code,
    )
    return {"success": True, "order": order}


def get_order_by_id(db: Session, order_id: int, user_id: int, is_admin: bool = False) -> dict:
    order = db.get(Order, order_id)
    if not order:
        return _fail(ORDER_NOT_FOUND, 404)
    if not is_admin and order.user_id != user_id:
        return _fail("No autorizado para ver esta orden", 403)
    return {"success": True, "order": order}


def _paginate(db: Session, stmt, count_stmt, page: int, limit: int) -> dict:
    total = db.exec(count_stmt).one()
    orders = list(db.exec(stmt.offset((page - 1) * limit).limit(limit)).all())
    return {
        "success": True,
        "orders": orders,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": math.ceil(total / limit) if limit else 0,
        },
    }


def get_user_orders(db: Session, user_id: int, status: str | None = None, page: int = 1, limit: int = 10) -> dict:
    stmt = select(Order).where(Order.user_id == user_id)
    count_stmt = select(func.count(Order.id)).where(Order.user_id == user_id)
    if status:
        stmt = stmt.where(Order.status == status)
        count_stmt = count_stmt.where(Order.status == status)
    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
    return _paginate(db, stmt, count_stmt, page, limit)


def get_all_orders(db: Session, status: str | None = None, page: int = 1, limit: int = 10) -> dict:
    stmt = select(Order)
    count_stmt = select(func.count(Order.id))
    if status:
        stmt = stmt.where(Order.status == status)
        count_stmt = count_stmt.where(Order.status == status)
    stmt = stmt.order_by(Order.created_at.desc(), Order.id.desc())
    return _paginate(db, stmt, count_stmt, page, limit)


def update_order_status(
    db: Session,
    order_id: int,
    status: str,
    updated_by: int,
    tracking_number: str | None = None,
    cancellation_reason: str | None = None,
) -> dict:
    if status not in UPDATABLE_STATUSES:
        return _fail("Estado de orden inválido")

    order = db.get(Order, order_id)
    if not order:
        return _fail(ORDER_NOT_FOUND, 404)

    if status == "cancelled" and order.status == "delivered":
        return _fail("No se puede cancelar una orden ya entregada")
    if status == "cancelled" and order.status == "cancelled":
        return _fail("La orden ya está cancelada")

    order.status = status
    if status == "shipped" and tracking_number:
        order.tracking_number = tracking_number
        order.shipped_at = utcnow()
    if status == "cancelled" and cancellation_reason:
        order.cancellation_reason = cancellation_reason
        order.cancelled_at = utcnow()

    db.add(order)
    db.commit()
    db.refresh(order)
    log.info(
        "Estado de orden actualizado: order_id=%s order_number=%s status=%s updated_by=%s",
        order.id,
        order.order_number,
        status,
        updated_by,
    )
    return {"success": True, "order": order}


def process_order_return(db: Session, order_id: int, data: OrderReturnRequest, user_id: int) -> dict:
    """Solo el dueño de la orden; cada línea devuelta entra al ledger como 'return'."""
    order = db.get(Order, order_id)
    if not order:
        return _fail(ORDER_NOT_FOUND, 404)
    if order.user_id != user_id:
        return _fail("No autorizado para procesar esta devolución", 403)

    if order.status == "returned":
        return _fail("La orden ya fue devuelta")

    ordered: dict[int, int] = {}
    for line in order.items:
        ordered[line.product_id] = ordered.get(line.product_id, 0) + line.quantity

    # lo ya devuelto queda en el ledger como movimientos 'return' de esta orden
    stmt = (
        select(InventoryMovement.product_id, func.sum(InventoryMovement.quantity))
        .where(
            InventoryMovement.order_id == order.id,
            InventoryMovement.action == StockAction.returned.value,
        )
        .group_by(InventoryMovement.product_id)
    )
    returned = {product_id: int(total or 0) for product_id, total in db.exec(stmt).all()}
    for item in data.items:
        returned[item.product_id] = returned.get(item.product_id, 0) + item.quantity

    for item in data.items:
        if item.product_id not in ordered:
            return _fail(f"Producto no pertenece a la orden: {item.product_id}")
        if returned[item.product_id] > ordered[item.product_id]:
            return _fail(f"Cantidad a devolver mayor a la comprada: {item.product_id}")

    try:
        for item in data.items:
            result = inventory_service.record_movement(
                db,
                item.product_id,
                StockAction.returned.value,
                item.quantity,
                user_id,
                order_id=order.id,
                reason=data.reason or "Devolución de producto",
                notes=f"Devolución de orden {order.order_number}",
                commit=False,
            )
            if not result["success"]:
                db.rollback()
                return _fail(result["error"])
        order.status = "returned"
        db.add(order)
        db.commit()
    except Exception:
        db.rollback()
        log.exception("Error al procesar devolución: order_id=%s", order_id)
        raise

    db.refresh(order)
    log.info(
        "Devolución procesada: order_id=%s order_number=%s user_id=%s", order.id, order.order_number, user_id
    )
    return {"success": True, "order": order}
