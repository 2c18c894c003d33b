"""Integration tests for API endpoints"""

import pytest
from decimal import Decimal

from fastapi.testclient import TestClient

pytestmark = pytest.mark.integration


def create_service(client: TestClient, **overrides) -> dict:
    body = {"name": "Rent", "estimated_amount": "1500.00", "day_of_month": 5}
    body.update(overrides)
    response = client.post("/v1/services", json=body)
    assert response.status_code == 201
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "billfold_month_close_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_missing_user_header_is_rejected(client: TestClient):
    response = client.get("/v1/services", headers={"X-User-ID": ""})
    assert response.status_code == 422


def test_purchase_consumption_and_schedule(client: TestClient):
    """Test POST purchase then monthly consumption for a card"""
    response = client.post(
        "/v1/cards/card_1/purchases",
        json={
            "description": "TV",
            "total_amount": "5000.00",
            "installments": 12,
            "first_installment_date": "2024-11-15",
        },
    )
    assert response.status_code == 201
    purchase_id = response.json()["purchase_id"]

    client.post(
        "/v1/cards/card_1/purchases",
        json={"description": "Groceries", "total_amount": "500.00", "installments": 1,
              "first_installment_date": "2025-01-03"},
    )

    response = client.get("/v1/cards/card_1/consumption", params={"year": 2025, "month": 1})
    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["total_amount"]) == Decimal("916.66")
    assert [item["installment_number"] for item in data["items"]] == [3, 1]

    response = client.get("/v1/cards/card_1/consumption", params={"year": 2025, "month": 11})
    assert response.json()["items"] == []

    response = client.get(f"/v1/cards/card_1/purchases/{purchase_id}/schedule")
    assert response.status_code == 200
    installments = response.json()["installments"]
    assert len(installments) == 12
    assert sum(Decimal(i["amount"]) for i in installments) == Decimal("5000.00")
    assert installments[-1]["due_date"] == "2025-10-15"


def test_schedule_of_other_card_is_not_found(client: TestClient):
    response = client.post(
        "/v1/cards/card_1/purchases",
        json={"description": "Phone", "total_amount": "100.00", "installments": 2,
              "first_installment_date": "2025-01-01"},
    )
    purchase_id = response.json()["purchase_id"]

    response = client.get(f"/v1/cards/card_2/purchases/{purchase_id}/schedule")
    assert response.status_code == 404


def test_purchase_validation(client: TestClient):
    response = client.post(
        "/v1/cards/card_1/purchases",
        json={"description": "Bad", "total_amount": "0", "installments": 0, "first_installment_date": "2025-01-01"},
    )
    assert response.status_code == 422


def test_card_payment_status(client: TestClient):
    response = client.post(
        "/v1/transactions",
        json={"amount": "900.00", "date": "2025-02-10", "is_credit_card_payment": True, "card_id": "card_1"},
    )
    assert response.status_code == 201

    data = client.get("/v1/cards/card_1/payment-status", params={"year": 2025, "month": 2}).json()
    assert data["is_paid"] is True
    assert data["transaction_id"] == response.json()["transaction_id"]

    data = client.get("/v1/cards/card_1/payment-status", params={"year": 2025, "month": 3}).json()
    assert data["is_paid"] is False


def test_card_payment_requires_card(client: TestClient):
    response = client.post(
        "/v1/transactions", json={"amount": "900.00", "date": "2025-02-10", "is_credit_card_payment": True}
    )
    assert response.status_code == 422


def test_mark_paid_is_idempotent(client: TestClient):
    """Test PUT twice leaves a single payment with the latest amount"""
    service = create_service(client)
    url = f"/v1/services/{service['service_id']}/payments/2025/3"

    assert client.put(url, json={"amount": "1500.00"}).status_code == 200
    response = client.put(url, json={"amount": "1480.00", "transaction_id": "txn_1"})
    assert response.status_code == 200

    data = client.get(url).json()
    assert data["status"] == "paid"
    assert Decimal(data["amount"]) == Decimal("1480.00")
    assert data["transaction_id"] == "txn_1"


def test_unpaid_service_status(client: TestClient):
    service = create_service(client, name="Internet", estimated_amount="45.50", day_of_month=31)
    url = f"/v1/services/{service['service_id']}/payments/2025/2"

    data = client.get(url, params={"today": "2025-02-28"}).json()
    assert data["status"] == "pending"
    assert Decimal(data["amount"]) == Decimal("45.50")

    data = client.get(url, params={"today": "2025-03-01"}).json()
    assert data["status"] == "overdue"


def test_unmark_cascades_to_transaction(client: TestClient):
    service = create_service(client)
    txn = client.post("/v1/transactions", json={"amount": "1500.00", "date": "2025-03-05"}).json()
    url = f"/v1/services/{service['service_id']}/payments/2025/3"
    client.put(url, json={"amount": "1500.00", "transaction_id": txn["transaction_id"]})

    response = client.delete(url)
    assert response.status_code == 200
    assert response.json() == {
        "removed": True,
        "linked_transaction_deleted": True,
        "linked_transaction_error": None,
    }
    assert client.get("/v1/transactions", params={"year": 2025, "month": 3}).json() == []

    response = client.delete(url)
    assert response.json()["removed"] is False


def test_mark_paid_unknown_service(client: TestClient):
    response = client.put("/v1/services/missing/payments/2025/3", json={"amount": "10.00"})
    assert response.status_code == 404


def test_invalid_month_in_path(client: TestClient):
    service = create_service(client)
    response = client.get(f"/v1/services/{service['service_id']}/payments/2025/13")
    assert response.status_code == 422


def test_services_total(client: TestClient):
    rent = create_service(client)
    create_service(client, name="Internet", estimated_amount="45.50", day_of_month=31)
    create_service(client, name="Gym", estimated_amount="30.00", day_of_month=1, is_active=False)
    client.put(f"/v1/services/{rent['service_id']}/payments/2025/3", json={"amount": "1450.00"})

    data = client.get("/v1/services/total", params={"year": 2025, "month": 3}).json()

    assert Decimal(data["total"]) == Decimal("1495.50")
    assert Decimal(data["actual_total"]) == Decimal("1450.00")
    assert len(data["entries"]) == 2
    kinds = {e["service_id"]: e["kind"] for e in data["entries"]}
    assert kinds[rent["service_id"]] == "actual"
    assert sorted(kinds.values()) == ["actual", "forecasted"]


def test_update_and_delete_service(client: TestClient):
    service = create_service(client)
    url = f"/v1/services/{service['service_id']}"

    response = client.patch(url, json={"estimated_amount": "1600.00"})
    assert response.status_code == 200
    assert Decimal(response.json()["estimated_amount"]) == Decimal("1600.00")
    assert response.json()["name"] == "Rent"

    assert client.delete(url).status_code == 204
    assert client.delete(url).status_code == 404
    assert client.get("/v1/services").json() == []


def test_services_are_per_user(client: TestClient):
    create_service(client)
    response = client.get("/v1/services", headers={"X-User-ID": "someone_else"})
    assert response.json() == []


def test_summary(client: TestClient):
    """Test balance after expenses, pending services and carry-over"""
    create_service(client, name="Internet", estimated_amount="50.00", day_of_month=20)
    client.post("/v1/transactions", json={"amount": "300.00", "date": "2025-03-02"})
    client.post("/v1/transactions", json={"amount": "80.00", "date": "2025-02-15"})

    response = client.get("/v1/summary", params={"income": "2000", "today": "2025-03-10"})
    assert response.status_code == 200
    data = response.json()

    assert Decimal(data["total_so_far"]) == Decimal("300")
    assert Decimal(data["projected_total"]) == Decimal("930.00")
    assert Decimal(data["previous_month_total"]) == Decimal("80")
    assert Decimal(data["pending_recurring"]) == Decimal("50.00")
    assert Decimal(data["balance"]) == Decimal("1650.00")
    assert data["days_remaining"] == 22


def test_month_close_split_then_summary(client: TestClient):
    """Test 1000 left with 300 actually remaining: 700 expense, 300 carried into April"""
    response = client.post(
        "/v1/month-close",
        json={"month": 3, "year": 2025, "remaining_balance": "1000.00", "action": "split",
              "actual_remaining": "300"},
    )
    assert response.status_code == 200
    assert response.json() == {"month": 3, "year": 2025, "resolved": True, "action": "split"}

    expenses = client.get("/v1/transactions", params={"year": 2025, "month": 3}).json()
    assert len(expenses) == 1
    assert Decimal(expenses[0]["amount"]) == Decimal("700.00")
    assert expenses[0]["date"] == "2025-03-31"
    assert expenses[0]["source"] == "month_close"

    data = client.get("/v1/summary", params={"income": "0", "today": "2025-04-01"}).json()
    assert Decimal(data["carry_over"]) == Decimal("300.00")

    response = client.post(
        "/v1/month-close",
        json={"month": 3, "year": 2025, "remaining_balance": "1000.00", "action": "carry_over"},
    )
    assert response.status_code == 409


def test_month_close_deficit_only_start_fresh(client: TestClient):
    response = client.post(
        "/v1/month-close",
        json={"month": 3, "year": 2025, "remaining_balance": "-500.00", "action": "carry_over"},
    )
    assert response.status_code == 409

    response = client.post(
        "/v1/month-close",
        json={"month": 3, "year": 2025, "remaining_balance": "-500.00", "action": "start_fresh"},
    )
    assert response.status_code == 200
    assert client.get("/v1/transactions", params={"year": 2025, "month": 3}).json() == []


def test_month_close_zero_balance(client: TestClient):
    response = client.post(
        "/v1/month-close",
        json={"month": 3, "year": 2025, "remaining_balance": "0", "action": "start_fresh"},
    )
    assert response.status_code == 200
    assert response.json()["resolved"] is False


def test_month_close_bad_amount(client: TestClient):
    response = client.post(
        "/v1/month-close",
        json={"month": 3, "year": 2025, "remaining_balance": "1000.00", "action": "split",
              "actual_remaining": "abc"},
    )
    assert response.status_code == 422


def test_patch_service_rejects_null_fields(client: TestClient):
    service = create_service(client)
    url = f"/v1/services/{service['service_id']}"

    for field in ("estimated_amount", "day_of_month", "name"):
        response = client.patch(url, json={field: None})
        assert response.status_code == 422

    response = client.patch(url, json={"category_id": None})
    assert response.status_code == 200
    assert Decimal(client.get("/v1/services").json()[0]["estimated_amount"]) == Decimal("1500.00")


def test_month_close_split_with_nothing_unrecorded(client: TestClient):
    for actual_remaining in ("1000", "1.200", ""):
        response = client.post(
            "/v1/month-close",
            json={"month": 3, "year": 2025, "remaining_balance": "1000.00", "action": "split",
                  "actual_remaining": actual_remaining},
        )
        assert response.status_code == 422
        assert "nothing would be recorded" in response.json()["detail"]

    assert client.get("/v1/transactions", params={"year": 2025, "month": 3}).json() == []


def test_list_and_delete_purchases(client: TestClient):
    created = client.post(
        "/v1/cards/card_1/purchases",
        json={"description": "Sofa", "total_amount": "900.00", "installments": 3,
              "first_installment_date": "2025-01-10"},
    ).json()
    client.post(
        "/v1/cards/card_2/purchases",
        json={"description": "Bike", "total_amount": "300.00", "installments": 1,
              "first_installment_date": "2025-01-10"},
    )

    purchases = client.get("/v1/cards/card_1/purchases").json()
    assert [p["description"] for p in purchases] == ["Sofa"]

    url = f"/v1/cards/card_1/purchases/{created['purchase_id']}"
    assert client.delete(f"/v1/cards/card_2/purchases/{created['purchase_id']}").status_code == 404
    assert client.delete(url).status_code == 204
    assert client.delete(url).status_code == 404
    assert client.get("/v1/cards/card_1/purchases").json() == []

    response = client.get("/v1/cards/card_1/consumption", params={"year": 2025, "month": 2})
    assert response.json()["items"] == []


def test_list_active_services_only(client: TestClient):
    create_service(client)
    create_service(client, name="Gym", estimated_amount="30.00", day_of_month=1, is_active=False)

    assert [s["name"] for s in client.get("/v1/services").json()] == ["Gym", "Rent"]
    assert [s["name"] for s in client.get("/v1/services", params={"active_only": True}).json()] == ["Rent"]
