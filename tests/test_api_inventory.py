"""Endpoints /inventory: lecturas autenticadas y ajustes solo para administradores."""
from fastapi.testclient import TestClient


def test_check_stock(client: TestClient, auth_headers, make_product):
    product = make_product(stock=3)
    r = client.post(f"/inventory/check-stock/{product.id}", json={"quantity": 5}, headers=auth_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data == {"available": False, "current_stock": 3, "requested_quantity": 5, "shortage": 2}

    r = client.post(f"/inventory/check-stock/{product.id}", json={"quantity": 0}, headers=auth_headers)
    assert r.status_code == 422
    r = client.post("/inventory/check-stock/999", json={"quantity": 1}, headers=auth_headers)
    assert r.status_code == 404


def test_adjust_and_restock_are_admin_only(client: TestClient, auth_headers, admin_headers, make_product):
    product = make_product(stock=10)
    body = {"new_stock": 4, "reason": "Conteo físico"}
    assert client.post(f"/inventory/adjust-stock/{product.id}", json=body, headers=auth_headers).status_code == 403

    r = client.post(f"/inventory/adjust-stock/{product.id}", json=body, headers=admin_headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["product"]["new_stock"] == 4
    assert data["inventory_record"]["action"] == "adjustment"
    assert data["inventory_record"]["quantity"] == 6

    r = client.post(f"/inventory/restock/{product.id}", json={"quantity": 6}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["product"]["new_stock"] == 10
    assert r.json()["data"]["inventory_record"]["reason"] == "Restock manual"


def test_adjust_requires_reason(client: TestClient, admin_headers, make_product):
    product = make_product(stock=10)
    r = client.post(f"/inventory/adjust-stock/{product.id}", json={"new_stock": 2}, headers=admin_headers)
    assert r.status_code == 422
    assert "reason" in r.json()["error"]


def test_adjust_unknown_product(client: TestClient, admin_headers):
    r = client.post("/inventory/adjust-stock/999", json={"new_stock": 1, "reason": "x"}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["error"] == "Producto no encontrado"


def test_reads(client: TestClient, auth_headers, admin_headers, make_product):
    product = make_product(stock=2)
    client.post(f"/inventory/restock/{product.id}", json={"quantity": 3}, headers=admin_headers)

    history = client.get(f"/inventory/product/{product.id}/history", headers=auth_headers).json()["data"]["history"]
    assert len(history) == 1 and history[0]["stock_change"] == 3

    recent = client.get("/inventory/recent-movements", headers=auth_headers).json()["data"]["movements"]
    assert recent[0]["product_name"] == product.name

    stats = client.get("/inventory/stats", headers=auth_headers).json()["data"]["stats"]
    assert stats == [{"action": "restock", "count": 1, "total_quantity": 3, "products_affected": 1}]

    low = client.get("/inventory/low-stock", params={"threshold": 5}, headers=auth_headers).json()["data"]
    assert [p["id"] for p in low["products"]] == [product.id]

    dashboard = client.get("/inventory/dashboard", headers=auth_headers).json()["data"]
    assert dashboard["period"] == "30 días"
    assert len(dashboard["recent_movements"]) == 1


def test_reconcile_endpoint(client: TestClient, auth_headers, admin_headers):
    product = client.post(
        "/products/",
        json={"name": "Juego Catan", "code": "jue-1", "category": "Juego de mesa", "price": 35000, "stock": 4},
        headers=admin_headers,
    ).json()["data"]["product"]
    assert client.get(f"/inventory/product/{product['id']}/reconcile", headers=auth_headers).status_code == 403
    r = client.get(f"/inventory/product/{product['id']}/reconcile", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["consistent"] is True
