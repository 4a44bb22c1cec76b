"""Endpoints /orders y /products: checkout por HTTP, estados, devoluciones y catálogo."""
from fastapi.testclient import TestClient
from sqlmodel import select

from app.models import InventoryMovement, Product


def test_checkout_over_http(client: TestClient, db, auth_headers, make_product, make_coupon):
    product = make_product(price=25000, stock=10)
    make_coupon(code="DESC10", value=10)
    r = client.post(
        "/orders/",
        json={
            "items": [{"product_id": product.id, "quantity": 2}],
            "coupon_code": "desc10",
            "shipping_address": {"first_name": "Ana", "city": "Santiago"},
        },
        headers=auth_headers,
    )
    assert r.status_code == 201
    order = r.json()["data"]["order"]
    assert order["subtotal"] == 50000
    assert order["discount_amount"] == 5000
    assert order["total"] == 50000
    assert order["status"] == "pending"
    assert order["coupon_code"] == "DESC10"
    assert order["shipping_address"]["city"] == "Santiago"
    assert order["items"][0]["quantity"] == 2

    db.expire_all()
    assert db.get(Product, product.id).stock == 8


def test_checkout_rejections(client: TestClient, auth_headers, make_product):
    product = make_product(name="Zapatilla", stock=1)
    r = client.post("/orders/", json={"items": []}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "El carrito está vacío"

    r = client.post("/orders/", json={"items": [{"product_id": product.id, "quantity": 3}]}, headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "Stock insuficiente para Zapatilla"


def test_checkout_validation_error(client: TestClient, auth_headers):
    r = client.post("/orders/", json={"items": [{"product_id": 1, "quantity": 0}]}, headers=auth_headers)
    assert r.status_code == 422
    body = r.json()
    assert body["status_code"] == 422
    assert body["error"].startswith("items.0.quantity")


def test_my_orders_and_access(client: TestClient, auth_headers, make_user, headers_for, make_product):
    product = make_product(stock=10)
    created = client.post(
        "/orders/", json={"items": [{"product_id": product.id, "quantity": 1}]}, headers=auth_headers
    ).json()["data"]["order"]

    mine = client.get("/orders/my-orders", headers=auth_headers).json()["data"]
    assert [o["id"] for o in mine["orders"]] == [created["id"]]
    assert mine["pagination"]["total"] == 1

    stranger = headers_for(make_user())
    assert client.get(f"/orders/{created['id']}", headers=stranger).status_code == 403
    assert client.get(f"/orders/{created['id']}", headers=auth_headers).status_code == 200
    assert client.get("/orders/999", headers=auth_headers).status_code == 404


def test_admin_status_flow(client: TestClient, auth_headers, admin_headers, make_product):
    product = make_product(stock=10)
    order_id = client.post(
        "/orders/", json={"items": [{"product_id": product.id, "quantity": 1}]}, headers=auth_headers
    ).json()["data"]["order"]["id"]

    assert client.put(f"/orders/{order_id}/status", json={"status": "shipped"}, headers=auth_headers).status_code == 403

    r = client.put(
        f"/orders/{order_id}/status",
        json={"status": "shipped", "tracking_number": "CL123"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["order"]["tracking_number"] == "CL123"

    client.put(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=admin_headers)
    r = client.put(f"/orders/{order_id}/status", json={"status": "cancelled"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"] == "No se puede cancelar una orden ya entregada"

    listed = client.get("/orders/", params={"status": "delivered"}, headers=admin_headers).json()["data"]
    assert [o["id"] for o in listed["orders"]] == [order_id]


def test_return_over_http(client: TestClient, db, auth_headers, make_product):
    product = make_product(stock=5)
    order_id = client.post(
        "/orders/", json={"items": [{"product_id": product.id, "quantity": 2}]}, headers=auth_headers
    ).json()["data"]["order"]["id"]
    r = client.post(
        f"/orders/{order_id}/return",
        json={"items": [{"product_id": product.id, "quantity": 2}], "reason": "Talla incorrecta"},
        headers=auth_headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["order"]["status"] == "returned"
    db.expire_all()
    assert db.get(Product, product.id).stock == 5
    movement = db.exec(select(InventoryMovement).where(InventoryMovement.action == "return")).one()
    assert movement.reason == "Talla incorrecta"


def test_products_catalog(client: TestClient, auth_headers, admin_headers):
    payload = {"name": "Camisa Oxford", "code": "cam-ox", "category": "Camisas", "price": 29990, "stock": 12}
    assert client.post("/products/", json=payload, headers=auth_headers).status_code == 403

    r = client.post("/products/", json=payload, headers=admin_headers)
    assert r.status_code == 201
    product = r.json()["data"]["product"]
    assert product["code"] == "CAM-OX"
    assert product["stock"] == 12
    assert product["in_stock"] is True

    bad = client.post("/products/", json={**payload, "category": "Sombreros"}, headers=admin_headers)
    assert bad.status_code == 422

    r = client.put(f"/products/{product['id']}", json={"stock": 0, "stock_reason": "Agotado"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["product"]["in_stock"] is False

    listed = client.get("/products/", params={"category": "Camisas"}).json()["data"]["products"]
    assert [p["name"] for p in listed] == ["Camisa Oxford"]
    assert client.get(f"/products/{product['id']}").status_code == 200
    assert client.get("/products/999").status_code == 404

    history = client.get(f"/inventory/product/{product['id']}/history", headers=auth_headers).json()["data"]["history"]
    assert [h["action"] for h in history] == ["adjustment", "restock"]
