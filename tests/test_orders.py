"""Checkout: totales, cupón, ventas en el ledger y atomicidad; estados y devoluciones."""
import re

import pytest
from sqlmodel import select

from app.models import Coupon, CouponUsage, InventoryMovement, Order, Product
from app.schemas import OrderCreate, OrderReturnRequest
from app.services import inventory as inventory_service
from app.services import orders as order_service


def _cart(*lines, coupon_code=None) -> OrderCreate:
    return OrderCreate(
        items=[{"product_id": pid, "quantity": qty} for pid, qty in lines],
        coupon_code=coupon_code,
    )


def test_order_number_format():
    assert re.fullmatch(r"ORD-\d{13}-[A-Z0-9]{9}", order_service.generate_order_number())


def test_checkout_with_percentage_coupon(db, user, make_product, make_coupon):
    product = make_product(price=25000, stock=10)
    coupon = make_coupon(code="DESC10", value=10)

    result = order_service.create_order(db, _cart((product.id, 2), coupon_code="desc10"), user.id)
    assert result["success"] is True
    order = result["order"]
    assert order.subtotal == 50000
    assert order.shipping_cost == 5000
    assert order.discount_amount == 5000
    assert order.total == 50000
    assert (order.coupon_code, order.coupon_name, order.coupon_discount) == ("DESC10", coupon.name, 5000)
    assert len(order.items) == 1
    assert (order.items[0].quantity, order.items[0].price, order.items[0].total) == (2, 25000, 50000)

    db.expire_all()
    assert db.get(Product, product.id).stock == 8
    sale = db.exec(select(InventoryMovement).where(InventoryMovement.order_id == order.id)).one()
    assert (sale.action, sale.quantity, sale.reason, sale.notes) == (
        "sale", 2, "Venta realizada", f"Orden {order.order_number}"
    )
    usage = db.exec(select(CouponUsage).where(CouponUsage.order_id == order.id)).one()
    assert usage.discount_amount == 5000
    assert db.get(Coupon, coupon.id).used_count == 1


def test_checkout_free_shipping(db, user, make_product, make_coupon):
    product = make_product(price=10000, stock=5)
    make_coupon(code="ENVIO", type="free_shipping", value=123)
    order = order_service.create_order(db, _cart((product.id, 1), coupon_code="ENVIO"), user.id)["order"]
    assert order.discount_amount == 5000
    assert order.total == 10000


def test_checkout_without_coupon(db, user, make_product):
    a = make_product(price=1000, stock=5)
    b = make_product(price=2500, stock=5)
    order = order_service.create_order(db, _cart((a.id, 3), (b.id, 1)), user.id)["order"]
    assert order.subtotal == 5500
    assert order.discount_amount == 0
    assert order.coupon_code is None
    assert order.total == 10500
    assert db.exec(select(CouponUsage)).all() == []


def test_empty_cart(db, user):
    assert order_service.create_order(db, _cart(), user.id)["error"] == "El carrito está vacío"


def test_repeated_lines_are_checked_against_total_stock(db, user, make_product):
    product = make_product(name="Chaqueta", price=1000, stock=5)
    result = order_service.create_order(db, _cart((product.id, 3), (product.id, 3)), user.id)
    assert result == {"success": False, "error": "Stock insuficiente para Chaqueta", "status_code": 400}
    assert db.exec(select(Order)).all() == []
    assert db.exec(select(InventoryMovement)).all() == []
    db.expire_all()
    assert db.get(Product, product.id).stock == 5

    order = order_service.create_order(db, _cart((product.id, 2), (product.id, 3)), user.id)["order"]
    assert order.subtotal == 5000
    assert len(order.items) == 2
    db.expire_all()
    assert db.get(Product, product.id).stock == 0
    sales = db.exec(
        select(InventoryMovement).where(InventoryMovement.action == "sale").order_by(InventoryMovement.id)
    ).all()
    assert [m.new_stock for m in sales] == [3, 0]


def test_missing_product_rejects_whole_order(db, user, make_product):
    product = make_product(stock=5)
    result = order_service.create_order(db, _cart((product.id, 1), (999, 1)), user.id)
    assert result["error"] == "Producto no encontrado: 999"
    assert db.exec(select(Order)).all() == []
    db.expire_all()
    assert db.get(Product, product.id).stock == 5


def test_insufficient_stock(db, user, make_product):
    product = make_product(name="Camisa Lino", stock=1)
    result = order_service.create_order(db, _cart((product.id, 2)), user.id)
    assert result["error"] == "Stock insuficiente para Camisa Lino"


def test_invalid_coupon_aborts_checkout(db, user, make_product, make_coupon):
    product = make_product(price=10000, stock=5)
    make_coupon(code="MIN", min_order_amount=60000)
    result = order_service.create_order(db, _cart((product.id, 1), coupon_code="MIN"), user.id)
    assert result["error"] == "El pedido debe ser de al menos $60,000"
    assert db.exec(select(Order)).all() == []
    db.expire_all()
    assert db.get(Product, product.id).stock == 5


def test_coupon_single_use_at_checkout(db, user, make_product, make_coupon):
    product = make_product(price=10000, stock=5)
    make_coupon(code="UNA")
    assert order_service.create_order(db, _cart((product.id, 1), coupon_code="UNA"), user.id)["success"]
    second = order_service.create_order(db, _cart((product.id, 1), coupon_code="UNA"), user.id)
    assert second["error"] == "Ya has usado este cupón anteriormente"
    assert len(db.exec(select(Order)).all()) == 1


def test_failure_after_order_insert_rolls_everything_back(db, user, make_product, make_coupon, monkeypatch):
    product = make_product(price=25000, stock=10)
    coupon = make_coupon(code="ATOM")

    def boom(*args, **kwargs):
        raise RuntimeError("ledger caído")

    monkeypatch.setattr(inventory_service, "record_movement", boom)
    with pytest.raises(RuntimeError):
        order_service.create_order(db, _cart((product.id, 2), coupon_code="ATOM"), user.id)

    db.expire_all()
    assert db.exec(select(Order)).all() == []
    assert db.exec(select(CouponUsage)).all() == []
    assert db.get(Coupon, coupon.id).used_count == 0
    assert db.get(Product, product.id).stock == 10


def test_update_status_rules(db, user, admin, make_product):
    product = make_product(stock=5)
    order = order_service.create_order(db, _cart((product.id, 1)), user.id)["order"]

    assert order_service.update_order_status(db, order.id, "lost", admin.id)["error"] == "Estado de orden inválido"
    assert order_service.update_order_status(db, 999, "shipped", admin.id)["status_code"] == 404

    shipped = order_service.update_order_status(db, order.id, "shipped", admin.id, tracking_number="TRK-1")["order"]
    assert shipped.tracking_number == "TRK-1"
    assert shipped.shipped_at is not None

    order_service.update_order_status(db, order.id, "delivered", admin.id)
    result = order_service.update_order_status(db, order.id, "cancelled", admin.id)
    assert result["error"] == "No se puede cancelar una orden ya entregada"


def test_cancel_twice(db, user, admin, make_product):
    product = make_product(stock=5)
    order = order_service.create_order(db, _cart((product.id, 1)), user.id)["order"]
    cancelled = order_service.update_order_status(
        db, order.id, "cancelled", admin.id, cancellation_reason="Cliente se arrepintió"
    )["order"]
    assert cancelled.cancellation_reason == "Cliente se arrepintió"
    assert cancelled.cancelled_at is not None
    again = order_service.update_order_status(db, order.id, "cancelled", admin.id)
    assert again["error"] == "La orden ya está cancelada"


def test_return_restocks_and_marks_order(db, user, make_product):
    product = make_product(stock=5)
    order = order_service.create_order(db, _cart((product.id, 3)), user.id)["order"]
    result = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": product.id, "quantity": 2}]), user.id
    )
    assert result["success"] is True
    assert result["order"].status == "returned"
    db.expire_all()
    assert db.get(Product, product.id).stock == 4
    movement = db.exec(
        select(InventoryMovement).where(InventoryMovement.action == "return")
    ).one()
    assert movement.reason == "Devolución de producto"
    assert movement.notes == f"Devolución de orden {order.order_number}"
    assert movement.order_id == order.id


def test_return_only_by_owner_and_for_ordered_items(db, user, make_user, make_product):
    product = make_product(stock=5)
    other = make_product(stock=5)
    order = order_service.create_order(db, _cart((product.id, 1)), user.id)["order"]

    stranger = make_user()
    denied = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": product.id, "quantity": 1}]), stranger.id
    )
    assert denied["status_code"] == 403

    wrong_item = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": other.id, "quantity": 1}]), user.id
    )
    assert wrong_item["success"] is False
    too_many = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": product.id, "quantity": 2}]), user.id
    )
    assert too_many["success"] is False


def test_return_cannot_exceed_what_was_sold(db, user, admin, make_product):
    product = make_product(stock=5)
    order = order_service.create_order(db, _cart((product.id, 2)), user.id)["order"]

    lines = [{"product_id": product.id, "quantity": 2}, {"product_id": product.id, "quantity": 1}]
    repeated = order_service.process_order_return(db, order.id, OrderReturnRequest(items=lines), user.id)
    assert repeated["error"] == f"Cantidad a devolver mayor a la comprada: {product.id}"

    first = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": product.id, "quantity": 1}]), user.id
    )
    assert first["success"] is True
    again = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": product.id, "quantity": 1}]), user.id
    )
    assert again["error"] == "La orden ya fue devuelta"

    # un admin que reabre la orden no habilita devolver más de lo vendido
    order_service.update_order_status(db, order.id, "delivered", admin.id)
    over = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": product.id, "quantity": 2}]), user.id
    )
    assert over["success"] is False
    rest = order_service.process_order_return(
        db, order.id, OrderReturnRequest(items=[{"product_id": product.id, "quantity": 1}]), user.id
    )
    assert rest["success"] is True

    db.expire_all()
    assert db.get(Product, product.id).stock == 5
    returns = db.exec(select(InventoryMovement).where(InventoryMovement.action == "return")).all()
    assert sum(m.quantity for m in returns) == 2


def test_order_listing_and_access(db, user, make_user, make_product):
    product = make_product(stock=20)
    for _ in range(3):
        order_service.create_order(db, _cart((product.id, 1)), user.id)
    other = make_user()
    foreign = order_service.create_order(db, _cart((product.id, 1)), other.id)["order"]

    page = order_service.get_user_orders(db, user.id, page=1, limit=2)
    assert len(page["orders"]) == 2
    assert page["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    everything = order_service.get_all_orders(db, limit=10)
    assert everything["pagination"]["total"] == 4

    assert order_service.get_order_by_id(db, foreign.id, user.id)["status_code"] == 403
    assert order_service.get_order_by_id(db, foreign.id, user.id, is_admin=True)["success"] is True
