"""
End-to-end tests for the order ledger JSON API.
"""
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from conftest import TODAY
from order_ledger.config import Settings
from order_ledger.services import OrderLedgerService
from order_ledger.web import create_app

ORDER = {
    "customer_id": "cust-1",
    "product_id": "prod-1",
    "quantity_ordered": 100,
    "selling_price": "50",
    "delivery_cost": "200",
    "delivery_date": TODAY.isoformat(),
}


@pytest.fixture()
def client(clock) -> TestClient:
    service = OrderLedgerService(clock=clock)
    return TestClient(create_app(Settings(SEED_DEMO_DATA=False), service=service))


def create(client: TestClient, **overrides) -> dict:
    resp = client.post("/orders", json={**ORDER, **overrides})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_order_payment_lifecycle(client: TestClient) -> None:
    order = create(client)
    assert order["financial_status"] == "Pending"
    assert Decimal(order["financials"]["total_order_value"]) == Decimal("5200")
    assert Decimal(order["financials"]["pending_amount"]) == Decimal("5200")

    resp = client.post(
        f"/orders/{order['id']}/advance-payment",
        json={"amount": 1000, "mode": "UPI", "transaction_id": "UPI-1"},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["financial_status"] == "Advance Received"

    resp = client.post(f"/orders/{order['id']}/payments", json={"amount": 4200, "mode": "NEFT"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["financial_status"] == "Fully Paid"
    assert body["version"] == 3
    assert Decimal(body["financials"]["pending_amount"]) == Decimal("0")

    resp = client.get(f"/orders/{order['id']}/financials")
    assert resp.status_code == 200
    assert Decimal(resp.json()["total_paid_amount"]) == Decimal("5200")


def test_invalid_input_is_rejected(client: TestClient) -> None:
    order = create(client)

    resp = client.post(f"/orders/{order['id']}/payments", json={"amount": 10, "mode": "Barter"})
    assert resp.status_code == 422
    resp = client.post(f"/orders/{order['id']}/payments", json={"amount": 0, "mode": "Cash"})
    assert resp.status_code == 422

    client.post(f"/orders/{order['id']}/advance-payment", json={"amount": 100})
    resp = client.post(f"/orders/{order['id']}/advance-payment", json={"amount": 200})
    assert resp.status_code == 422
    assert resp.json()["field"] == "advance_payment"

    stored = client.get(f"/orders/{order['id']}").json()
    assert stored["payments"] == []
    assert Decimal(stored["advance_payment"]["amount"]) == Decimal("100")


def test_unknown_order_returns_404(client: TestClient) -> None:
    assert client.get("/orders/missing").status_code == 404
    resp = client.post("/orders/missing/payments", json={"amount": 10, "mode": "Cash"})
    assert resp.status_code == 404


def test_credit_note_endpoints(client: TestClient) -> None:
    order = create(client)

    resp = client.post(
        f"/orders/{order['id']}/credit-notes",
        json={"amount": 300, "reason": "Quality Issue", "notes": "Scratches"},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["financial_status"] == "Credit Note Pending"
    assert body["financials"]["has_pending_credit_notes"] is True
    note_id = body["credit_notes"][0]["id"]

    resp = client.post(f"/orders/{order['id']}/credit-notes/{note_id}/refund")
    assert resp.status_code == 200, resp.text
    assert resp.json()["credit_notes"][0]["status"] == "Refunded"

    resp = client.post(f"/orders/{order['id']}/credit-notes/{note_id}/adjust")
    assert resp.status_code == 422


def test_delivery_endpoints(client: TestClient) -> None:
    first = create(client)
    second = create(client, quantity_ordered=10)

    resp = client.post(
        f"/orders/{first['id']}/deliveries",
        json={"quantity": 40, "payment": {"amount": 2000, "mode": "Cash"}},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["remaining_quantity"] == 60
    assert resp.json()["payments"][0]["notes"] == "Partial payment"
    invoice = resp.json()["invoices"][0]
    assert invoice["type"] == "Partial"
    assert Decimal(invoice["total_amount"]) == Decimal("2360")

    resp = client.post(
        "/orders/bulk-deliveries",
        json={
            "updates": [
                {"order_id": first["id"], "quantity": 60},
                {"order_id": "unknown", "quantity": 1},
                {"order_id": second["id"], "quantity": 10},
            ]
        },
    )
    assert resp.status_code == 200, resp.text
    assert [order["status"] for order in resp.json()] == ["Completed", "Completed"]

    resp = client.post(f"/orders/{first['id']}/deliveries", json={"quantity": 1})
    assert resp.status_code == 422


def test_cancel_and_complete(client: TestClient) -> None:
    order = create(client)
    resp = client.post(f"/orders/{order['id']}/cancel", json={"partial": True})
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "Partially Cancelled"

    other = create(client)
    resp = client.post(f"/orders/{other['id']}/complete")
    assert resp.json()["status"] == "Completed"
    assert resp.json()["quantity_delivered"] == 100

    cancelled = client.get("/orders", params={"status": "Partially Cancelled"}).json()
    assert [entry["id"] for entry in cancelled] == [order["id"]]


def test_terms_reschedule_and_refresh(client: TestClient, clock) -> None:
    order = create(client)

    resp = client.put(f"/orders/{order['id']}/payment-terms", json={"credit_period": 30})
    assert resp.status_code == 200, resp.text
    assert resp.json()["financial_status"] == "Pending"

    clock.advance(days=31)
    live = client.get(f"/orders/{order['id']}").json()
    assert live["financial_status"] == live["financials"]["financial_status"] == "Overdue"
    overdue = client.get("/orders", params={"financial_status": "Overdue"}).json()
    assert [entry["id"] for entry in overdue] == [order["id"]]

    assert client.post("/ledger/refresh").json() == {"updated": 1}
    assert client.get(f"/orders/{order['id']}").json()["financial_status"] == "Overdue"

    later = (TODAY + timedelta(days=31)).isoformat()
    resp = client.put(f"/orders/{order['id']}/delivery-date", json={"delivery_date": later})
    assert resp.json()["financial_status"] == "Pending"


def test_raw_material_consumption_endpoints(client: TestClient) -> None:
    order = create(client)
    url = f"/orders/{order['id']}/raw-material-consumption"

    resp = client.put(url, json={"status": "Partially Consumed", "consumed_quantity": 5})
    assert resp.status_code == 200, resp.text
    assert resp.json()["raw_material_consumption"]["status"] == "Partially Consumed"

    assert client.post(f"{url}/lock").json()["raw_material_consumption"]["locked"] is True
    resp = client.put(url, json={"status": "Fully Consumed", "consumed_quantity": 9})
    assert resp.status_code == 422


def test_ledger_summary_and_backlog(client: TestClient) -> None:
    paid = create(client)
    client.post(f"/orders/{paid['id']}/payments", json={"amount": 5200, "mode": "RTGS"})
    create(client, delivery_date=(TODAY - timedelta(days=2)).isoformat())

    summary = client.get("/ledger/summary").json()
    assert summary["order_count"] == 2
    assert Decimal(summary["receivables"]) == Decimal("5200")
    assert summary["by_financial_status"]["Fully Paid"] == 1
    assert summary["by_financial_status"]["Pending"] == 1

    backlog = client.get("/orders/backlog").json()
    assert backlog["in_progress_orders"] == 2
    assert backlog["delayed_orders"] == 1
    assert Decimal(backlog["remaining_value"]) == Decimal("10000")


def test_demo_data_is_seeded(clock) -> None:
    service = OrderLedgerService(clock=clock)
    client = TestClient(create_app(Settings(SEED_DEMO_DATA=True), service=service))

    orders = client.get("/orders").json()

    assert {order["financial_status"] for order in orders} == {
        "Fully Paid",
        "Partially Paid",
        "Overdue",
    }
