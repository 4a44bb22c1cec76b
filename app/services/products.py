"""Catálogo mínimo. El stock nunca se escribe acá directo: pasa por app.services.inventory."""
import logging

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.core.money import round_money
from app.models import Product, StockAction
from app.schemas.product import ProductCreate, ProductUpdate
from app.services import inventory as inventory_service

log = logging.getLogger("ropastore.products")


def create_product(db: Session, data: ProductCreate, user_id: int) -> dict:
    product = Product(
        name=data.name.strip(),
        code=data.code,
        description=data.description,
        category=data.category,
        price=round_money(data.price),
        stock=0,
        is_active=data.is_active,
        created_by=user_id,
    )
    db.add(product)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return {"success": False, "error": "Ya existe un producto con ese nombre o código"}

    if data.stock > 0:
        inventory_service.record_movement(
            db,
            product.id,
            StockAction.restock.value,
            data.stock,
            user_id,
            reason="Stock inicial",
            commit=False,
        )
    db.commit()
    db.refresh(product)
    log.info("Producto creado: product_id=%s code=%s stock=%s", product.id, product.code, product.stock)
    return {"success": True, "product": product}


def update_product(db: Session, product_id: int, data: ProductUpdate, user_id: int) -> dict:
    product = db.get(Product, product_id)
    if not product:
        return {"success": False, "error": "Producto no encontrado"}

    changes = data.model_dump(exclude_unset=True, exclude={"stock", "stock_reason"})
    for field, value in changes.items():
        if value is None:
            continue
        if field == "price":
            value = round_money(value)
        setattr(product, field, value)
    db.add(product)

    if data.stock is not None and data.stock != product.stock:
        result = inventory_service.set_stock(
            db,
            product_id,
            data.stock,
            user_id,
            reason=data.stock_reason or "Actualización de producto",
            commit=False,
        )
        if not result["success"]:
            db.rollback()
            return result

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return {"success": False, "error": "Ya existe un producto con ese nombre o código"}
    db.refresh(product)
    log.info("Producto actualizado: product_id=%s updated_by=%s", product_id, user_id)
    return {"success": True, "product": product}


def get_product(db: Session, product_id: int) -> Product | None:
    return db.get(Product, product_id)


def list_products(
    db: Session,
    category: str | None = None,
    include_inactive: bool = False,
    skip: int = 0,
    limit: int = 50,
) -> list[Product]:
    stmt = select(Product)
    if not include_inactive:
        stmt = stmt.where(Product.is_active == True)  # noqa: E712
    if category:
        stmt = stmt.where(Product.category == category)
    return list(db.exec(stmt.order_by(Product.name).offset(skip).limit(limit)).all())
