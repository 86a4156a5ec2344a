"""HTTP tests for expenses and the dashboard."""

import pytest


@pytest.fixture
def manager_headers(make_user):
    return make_user("boss", ["manager"])[1]


@pytest.mark.asyncio
async def test_expense_endpoints(api_client, manager_headers):
    created = await api_client.post(
        "/api/finance/expenses",
        json={"date": "2026-05-01", "title": "Electricity", "vendor": "Grid Co", "amount": 80.5},
        headers=manager_headers,
    )
    assert created.status_code == 201
    expense = created.json()["data"]
    assert expense["amount"] == 80.5
    assert expense["date"] == "2026-05-01"

    patched = await api_client.patch(
        f"/api/finance/expenses/{expense['id']}", json={"amount": 90, "vendor": None}, headers=manager_headers
    )
    assert patched.json()["data"]["amount"] == 90
    assert patched.json()["data"]["vendor"] is None

    listed = await api_client.get("/api/finance/expenses", headers=manager_headers)
    assert listed.json()["data"]["total"] == 90
    assert [row["title"] for row in listed.json()["data"]["expenses"]] == ["Electricity"]

    deleted = await api_client.delete(f"/api/finance/expenses/{expense['id']}", headers=manager_headers)
    assert deleted.status_code == 200
    missing = await api_client.delete(f"/api/finance/expenses/{expense['id']}", headers=manager_headers)
    assert missing.status_code == 404
    assert missing.json()["error"]["code"] == "expense_not_found"


@pytest.mark.asyncio
async def test_expense_amount_is_bounded(api_client, manager_headers):
    response = await api_client.post(
        "/api/finance/expenses",
        json={"date": "2026-05-01", "title": "Typo", "amount": 5_000_000},
        headers=manager_headers,
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_payload"


@pytest.mark.asyncio
async def test_finance_and_dashboard_need_permissions(api_client, make_user):
    _, cashier_headers = make_user("till", ["cashier"])
    assert (await api_client.get("/api/finance/expenses", headers=cashier_headers)).status_code == 403
    assert (await api_client.get("/api/dashboard/overview", headers=cashier_headers)).status_code == 403


@pytest.mark.asyncio
async def test_dashboard_overview_endpoint(api_client, catalog, manager_headers):
    order = await api_client.post(
        "/api/orders",
        json={"type": "TAKEAWAY", "customer_name": "Ola", "items": [{"product_id": catalog.tea_id, "quantity": 2}]},
        headers=manager_headers,
    )
    await api_client.patch(
        f"/api/orders/{order.json()['data']['id']}", json={"status": "DELIVERED"}, headers=manager_headers
    )
    await api_client.post(
        "/api/finance/expenses",
        json={"date": "2026-05-01", "title": "Gas", "amount": 3},
        headers=manager_headers,
    )

    response = await api_client.get("/api/dashboard/overview", headers=manager_headers)
    assert response.status_code == 200
    kpis = response.json()["data"]["kpis"]
    assert kpis["revenue"] == 10
    assert kpis["cogs"] == 2
    assert kpis["expenses"] == 3
    assert kpis["profit"] == 5
    assert response.json()["data"]["top_products"] == [{"id": catalog.tea_id, "name": "Tea", "qty": 2}]
