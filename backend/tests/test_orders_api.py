"""HTTP tests for /api/orders: envelope, status codes and permissions."""

import pytest


@pytest.fixture
def cashier_headers(make_user):
    return make_user("cashier", ["cashier"])[1]


def _tea_payload(catalog, quantity=2, **extra):
    payload = {
        "type": "DINE_IN",
        "customer_name": "Table guest",
        "items": [{"product_id": catalog.tea_id, "quantity": quantity}],
        "table_id": catalog.table_id,
    }
    payload.update(extra)
    return payload


@pytest.mark.asyncio
async def test_create_and_deliver_order(api_client, catalog, cashier_headers):
    response = await api_client.post("/api/orders", json=_tea_payload(catalog), headers=cashier_headers)
    assert response.status_code == 201
    body = response.json()
    assert body["ok"] is True
    order = body["data"]
    assert order["status"] == "PREPARING"
    assert order["total"] == 10
    assert order["table"] == "T1"

    tables = await api_client.get("/api/tables", headers=cashier_headers)
    assert tables.json()["data"][0]["status"] == "occupied"

    response = await api_client.patch(
        f"/api/orders/{order['id']}", json={"status": "DELIVERED"}, headers=cashier_headers
    )
    assert response.status_code == 200
    assert response.json()["data"]["sale_id"] is not None

    sales = await api_client.get("/api/sales", headers=cashier_headers)
    [sale] = sales.json()["data"]
    assert sale["order_id"] == order["id"]
    assert sale["status"] == "PAID"
    assert sale["total"] == 10


@pytest.mark.asyncio
async def test_insufficient_stock_error_envelope(api_client, catalog, cashier_headers):
    response = await api_client.post("/api/orders", json=_tea_payload(catalog, quantity=6), headers=cashier_headers)
    assert response.status_code == 400
    assert response.json() == {
        "ok": False,
        "error": {"code": "insufficient_stock", "message": response.json()["error"]["message"]},
    }


@pytest.mark.asyncio
async def test_occupied_table_is_rejected(api_client, catalog, cashier_headers):
    first = await api_client.post("/api/orders", json=_tea_payload(catalog, quantity=1), headers=cashier_headers)
    assert first.status_code == 201

    second = await api_client.post("/api/orders", json=_tea_payload(catalog, quantity=1), headers=cashier_headers)
    assert second.status_code == 400
    assert second.json()["error"]["code"] == "table_occupied"


@pytest.mark.asyncio
async def test_delivered_order_is_final(api_client, catalog, cashier_headers):
    created = await api_client.post("/api/orders", json=_tea_payload(catalog, quantity=1), headers=cashier_headers)
    order_id = created.json()["data"]["id"]
    await api_client.patch(f"/api/orders/{order_id}", json={"status": "DELIVERED"}, headers=cashier_headers)

    response = await api_client.patch(f"/api/orders/{order_id}", json={"status": "READY"}, headers=cashier_headers)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "order_finalized"


@pytest.mark.asyncio
async def test_invalid_payload(api_client, catalog, cashier_headers):
    response = await api_client.post(
        "/api/orders", json=_tea_payload(catalog, quantity=0), headers=cashier_headers
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_payload"


@pytest.mark.asyncio
async def test_unknown_order(api_client, cashier_headers):
    response = await api_client.get("/api/orders/4040", headers=cashier_headers)
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "order_not_found"


@pytest.mark.asyncio
async def test_requires_authentication(api_client):
    response = await api_client.get("/api/orders")
    assert response.status_code == 401
    assert response.json()["ok"] is False


@pytest.mark.asyncio
async def test_storekeeper_cannot_take_orders(api_client, catalog, make_user):
    _, headers = make_user("keeper", ["storekeeper"])
    response = await api_client.post("/api/orders", json=_tea_payload(catalog), headers=headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "forbidden"


@pytest.mark.asyncio
async def test_delete_accepts_delete_or_manage_permission(api_client, catalog, cashier_headers, admin_headers, make_user):
    created = await api_client.post("/api/orders", json=_tea_payload(catalog, quantity=1), headers=cashier_headers)
    order_id = created.json()["data"]["id"]

    _, keeper_headers = make_user("keeper", ["storekeeper"])
    denied = await api_client.delete(f"/api/orders/{order_id}", headers=keeper_headers)
    assert denied.status_code == 403

    # cashiers hold orders:manage, which is enough to delete
    deleted = await api_client.delete(f"/api/orders/{order_id}", headers=cashier_headers)
    assert deleted.status_code == 200
    tables = await api_client.get("/api/tables", headers=admin_headers)
    assert tables.json()["data"][0]["status"] == "empty"


@pytest.mark.asyncio
async def test_active_filter(api_client, catalog, cashier_headers):
    created = await api_client.post("/api/orders", json=_tea_payload(catalog, quantity=1), headers=cashier_headers)
    order_id = created.json()["data"]["id"]
    await api_client.patch(f"/api/orders/{order_id}", json={"status": "CANCELLED"}, headers=cashier_headers)

    active = await api_client.get("/api/orders", params={"status": "active"}, headers=cashier_headers)
    assert active.json()["data"] == []
    cancelled = await api_client.get("/api/orders", params={"status": "CANCELLED"}, headers=cashier_headers)
    assert [o["id"] for o in cancelled.json()["data"]] == [order_id]


@pytest.mark.asyncio
async def test_health(api_client):
    response = await api_client.get("/api/health")
    assert response.json()["data"]["status"] == "ok"
