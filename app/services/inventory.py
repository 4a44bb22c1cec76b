"""
Libro de inventario. Product.stock es un contador vivo; este módulo es el
único que lo escribe y cada cambio deja una fila InventoryMovement con el
stock anterior y el nuevo.
"""
import logging
from datetime import timedelta

from sqlalchemy import distinct, func
from sqlmodel import Session, select

from app.core.clock import utcnow
from app.core.config import settings
from app.models import InventoryMovement, Product, StockAction, User

log = logging.getLogger("ropastore.inventory")

PRODUCT_NOT_FOUND = "Producto no encontrado"
NEGATIVE_QUANTITY = "La cantidad no puede ser negativa"


class InvalidStockAction(ValueError):
    pass


def _lock_product(db: Session, product_id: int) -> Product | None:
    # FOR UPDATE en Postgres; SQLite lo omite (escrituras ya serializadas)
    stmt = select(Product).where(Product.id == product_id).with_for_update()
    return db.exec(stmt).first()


def _next_stock(action: str, previous: int, quantity: int) -> int:
    if action == StockAction.sale:
        return max(0, previous - quantity)
    if action in (StockAction.restock, StockAction.returned):
        return previous + quantity
    if action == StockAction.adjustment:
        return quantity
    raise InvalidStockAction(f"Acción de inventario no válida: {action}")


def record_movement(
    db: Session,
    product_id: int,
    action: str,
    quantity: int,
    user_id: int,
    order_id: int | None = None,
    reason: str | None = None,
    notes: str | None = None,
    commit: bool = True,
) -> dict:
    """
    Aplica el movimiento al producto y lo registra en el ledger.

    `quantity` es una magnitud (negativa se rechaza). sale resta con piso
    en 0 (lo absorbido se informa en `oversold`), restock/return suman,
    adjustment fija el stock en `quantity`.
    Con commit=False ambas escrituras quedan en la transacción del llamador.
    """
    if isinstance(action, StockAction):
        action = action.value
    if quantity < 0:
        return {"success": False, "error": NEGATIVE_QUANTITY}
    product = _lock_product(db, product_id)
    if not product:
        return {"success": False, "error": PRODUCT_NOT_FOUND}

    previous_stock = product.stock or 0
    new_stock = _next_stock(action, previous_stock, quantity)

    oversold = 0
    if action == StockAction.sale and quantity > previous_stock:
        oversold = quantity - previous_stock
        log.warning(
            "Venta por sobre el stock: product_id=%s previous_stock=%s quantity=%s order_id=%s",
            product_id,
            previous_stock,
            quantity,
            order_id,
        )

    product.stock = new_stock
    db.add(product)

    movement = InventoryMovement(
        product_id=product_id,
        action=action,
        quantity=abs(quantity),
        previous_stock=previous_stock,
        new_stock=new_stock,
        order_id=order_id,
        user_id=user_id,
        reason=reason,
        notes=notes,
        created_at=utcnow(),
    )
    db.add(movement)

    if commit:
        db.commit()
        db.refresh(movement)
    else:
        db.flush()

    log.info(
        "Movimiento de inventario: product_id=%s action=%s quantity=%s stock=%s->%s",
        product_id,
        action,
        quantity,
        previous_stock,
        new_stock,
    )
    return {
        "success": True,
        "inventory_record": movement,
        "product": {
            "id": product.id,
            "name": product.name,
            "previous_stock": previous_stock,
            "new_stock": new_stock,
        },
        "oversold": oversold,
    }


def set_stock(
    db: Session,
    product_id: int,
    new_stock: int,
    user_id: int,
    reason: str | None,
    notes: str | None = None,
    commit: bool = True,
) -> dict:
    """Corrección manual a un valor absoluto; el ledger guarda |nuevo - anterior|."""
    if not reason or not reason.strip():
        return {"success": False, "error": "La razón del ajuste es requerida"}
    if new_stock < 0:
        return {"success": False, "error": "El stock no puede ser negativo"}

    product = _lock_product(db, product_id)
    if not product:
        return {"success": False, "error": PRODUCT_NOT_FOUND}

    previous_stock = product.stock or 0
    product.stock = new_stock
    db.add(product)
    movement = InventoryMovement(
        product_id=product_id,
        action=StockAction.adjustment.value,
        quantity=abs(new_stock - previous_stock),
        previous_stock=previous_stock,
        new_stock=new_stock,
        user_id=user_id,
        reason=reason.strip(),
        notes=notes,
        created_at=utcnow(),
    )
    db.add(movement)
    if commit:
        db.commit()
        db.refresh(movement)
    else:
        db.flush()

    log.info(
        "Ajuste de stock: product_id=%s stock=%s->%s user_id=%s",
        product_id,
        previous_stock,
        new_stock,
        user_id,
    )
    return {
        "success": True,
        "inventory_record": movement,
        "product": {
            "id": product.id,
            "name": product.name,
            "previous_stock": previous_stock,
            "new_stock": new_stock,
        },
    }


def restock(
    db: Session,
    product_id: int,
    quantity: int,
    user_id: int,
    reason: str | None = None,
    order_id: int | None = None,
) -> dict:
    if quantity <= 0:
        return {"success": False, "error": "La cantidad debe ser mayor a 0"}
    return record_movement(
        db,
        product_id,
        StockAction.restock.value,
        quantity,
        user_id,
        order_id=order_id,
        reason=reason or "Restock manual",
        notes="Reabastecimiento de inventario",
    )


def _movement_row(movement: InventoryMovement, product_name=None, product_code=None, user_email=None) -> dict:
    row = movement.model_dump()
    row["stock_change"] = movement.stock_change
    row["product_name"] = product_name
    row["product_code"] = product_code
    row["user_email"] = user_email
    return row


def get_product_history(db: Session, product_id: int, limit: int = 50) -> dict:
    stmt = (
        select(InventoryMovement, User.email)
        .join(User, User.id == InventoryMovement.user_id, isouter=True)
        .where(InventoryMovement.product_id == product_id)
        .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
    )
    history = [_movement_row(m, user_email=email) for m, email in db.exec(stmt).all()]
    return {"success": True, "history": history}


def get_recent_movements(db: Session, limit: int = 100) -> dict:
    stmt = (
        select(InventoryMovement, Product.name, Product.code, User.email)
        .join(Product, Product.id == InventoryMovement.product_id, isouter=True)
        .join(User, User.id == InventoryMovement.user_id, isouter=True)
        .order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit)
    )
    movements = [
        _movement_row(m, product_name=name, product_code=code, user_email=email)
        for m, name, code, email in db.exec(stmt).all()
    ]
    return {"success": True, "movements": movements}


def get_inventory_stats(db: Session, product_id: int | None = None, days: int = 30) -> dict:
    start = utcnow() - timedelta(days=days)
    stmt = select(
        InventoryMovement.action,
        func.count(InventoryMovement.id),
        func.sum(InventoryMovement.quantity),
        func.count(distinct(InventoryMovement.product_id)),
    ).where(InventoryMovement.created_at >= start)
    if product_id is not None:
        stmt = stmt.where(InventoryMovement.product_id == product_id)
    stmt = stmt.group_by(InventoryMovement.action).order_by(InventoryMovement.action)

    stats = [
        {"action": action, "count": count, "total_quantity": int(total or 0), "products_affected": products}
        for action, count, total, products in db.exec(stmt).all()
    ]
    return {"success": True, "stats": stats}


def get_low_stock_products(db: Session, threshold: int | None = None) -> dict:
    if threshold is None:
        threshold = settings.low_stock_threshold
    stmt = (
        select(Product)
        .where(Product.is_active == True, Product.stock <= threshold)  # noqa: E712
        .order_by(Product.stock, Product.name)
    )
    products = [
        {"id": p.id, "name": p.name, "code": p.code, "category": p.category, "stock": p.stock, "price": p.price}
        for p in db.exec(stmt).all()
    ]
    return {"success": True, "products": products, "threshold": threshold}


def get_inventory_dashboard(db: Session, days: int = 30) -> dict:
    stats = get_inventory_stats(db, days=days)
    low_stock = get_low_stock_products(db)
    recent = get_recent_movements(db, limit=20)
    return {
        "success": True,
        "data": {
            "stats": stats["stats"],
            "low_stock_products": low_stock["products"],
            "recent_movements": recent["movements"],
            "period": f"{days} días",
        },
    }


def check_stock(db: Session, product_id: int, requested_quantity: int) -> dict:
    product = db.get(Product, product_id)
    if not product:
        return {"success": False, "error": PRODUCT_NOT_FOUND}
    current = product.stock or 0
    return {
        "success": True,
        "available": current >= requested_quantity,
        "current_stock": current,
        "requested_quantity": requested_quantity,
        "shortage": max(0, requested_quantity - current),
    }


def reconcile_product(db: Session, product_id: int) -> dict:
    """
    Recorre el ledger del producto en orden y verifica que cada movimiento
    parta del stock en que terminó el anterior, y que el último coincida con
    el stock vivo.
    """
    product = db.get(Product, product_id)
    if not product:
        return {"success": False, "error": PRODUCT_NOT_FOUND}

    stmt = (
        select(InventoryMovement)
        .where(InventoryMovement.product_id == product_id)
        .order_by(InventoryMovement.created_at, InventoryMovement.id)
    )
    movements = db.exec(stmt).all()

    breaks = []
    expected = None
    for m in movements:
        if expected is not None and m.previous_stock != expected:
            breaks.append({"movement_id": m.id, "expected_previous": expected, "previous_stock": m.previous_stock})
        expected = m.new_stock

    ledger_stock = expected if expected is not None else 0
    consistent = not breaks and ledger_stock == (product.stock or 0)
    if not consistent:
        log.warning(
            "Ledger inconsistente: product_id=%s ledger_stock=%s live_stock=%s breaks=%s",
            product_id,
            ledger_stock,
            product.stock,
            len(breaks),
        )
    return {
        "success": True,
        "consistent": consistent,
        "product_id": product_id,
        "live_stock": product.stock,
        "ledger_stock": ledger_stock,
        "movements": len(movements),
        "breaks": breaks,
    }
