"""Integration tests for the cart and order endpoints via TestClient."""

import pytest
import structlog
from fastapi.testclient import TestClient

from app import create_app
from ordering.errors import NotFoundError

CUSTOMER = {"X-User-Id": "user-001"}
OTHER_CUSTOMER = {"X-User-Id": "user-002"}
STAFF = {"X-User-Id": "staff-01", "X-User-Privileged": "true"}
SESSION = {"X-Session-Id": "sess-api-001"}


@pytest.fixture()
def client(ordering, products):
    with TestClient(create_app(ordering=ordering)) as test_client:
        yield test_client


def _create_order(client, *items, headers=CUSTOMER, **extra):
    lines = items or (("prod-001", 2, 25000.0),)
    response = client.post(
        "/orders",
        headers=headers,
        json={
            "items": [{"product_id": pid, "quantity": qty, "unit_price": price} for pid, qty, price in lines],
            "total_amount": sum(qty * price for _, qty, price in lines),
            "shipping_address": {"street": "45 Nguyen Hue", "city": "Ho Chi Minh City"},
            **extra,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


class TestHealth:
    @pytest.mark.fast
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "database": "sqlite"}


class TestRequestLogContext:
    def test_request_details_are_bound_while_handling(self, client, ordering, monkeypatch):
        seen = {}

        def get_by_id(order_id, owner_scope=None):
            seen.update(structlog.contextvars.get_contextvars())
            raise NotFoundError.order(order_id)

        monkeypatch.setattr(ordering.queries, "get_by_id", get_by_id)

        response = client.get("/orders/ord-42", headers=CUSTOMER)

        assert response.status_code == 404
        assert seen == {"method": "GET", "path": "/orders/ord-42", "user_id": "user-001"}
        assert structlog.contextvars.get_contextvars() == {}


class TestCartApi:
    def test_add_and_get(self, client):
        response = client.post("/cart/items", headers=SESSION, json={"product_id": "prod-001", "quantity": 2})
        assert response.status_code == 200
        assert response.json()["total_items"] == 2

        cart = client.get("/cart", headers=SESSION).json()
        assert cart["items"][0]["product_id"] == "prod-001"
        assert cart["total_amount"] == 50000.0

    def test_update_remove_clear(self, client):
        client.post("/cart/items", headers=SESSION, json={"product_id": "prod-001", "quantity": 1})
        client.post("/cart/items", headers=SESSION, json={"product_id": "prod-002", "quantity": 1})

        updated = client.put("/cart/items/prod-001", headers=SESSION, json={"quantity": 4}).json()
        assert updated["total_items"] == 5

        removed = client.delete("/cart/items/prod-002", headers=SESSION).json()
        assert [item["product_id"] for item in removed["items"]] == ["prod-001"]

        cleared = client.delete("/cart", headers=SESSION).json()
        assert cleared["items"] == []

    def test_sync(self, client):
        response = client.post(
            "/cart/sync",
            headers=SESSION,
            json={"local_cart_items": [{"id": "prod-002", "quantity": 2}, {"id": "prod-004", "quantity": 1}]},
        )
        assert response.status_code == 200
        assert [item["product_id"] for item in response.json()["items"]] == ["prod-002"]

    def test_insufficient_stock_maps_to_422(self, client):
        response = client.post("/cart/items", headers=SESSION, json={"product_id": "prod-002", "quantity": 50})
        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "BUSINESS_LOGIC_ERROR"
        assert body["error"]["details"]["available"] == 5

    def test_unknown_product_maps_to_404(self, client):
        response = client.post("/cart/items", headers=SESSION, json={"product_id": "prod-999"})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_missing_session_header_maps_to_400(self, client):
        response = client.get("/cart")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestOrderApi:
    def test_create_and_fetch(self, client):
        created = _create_order(client, ("prod-001", 2, 25000.0), ("prod-003", 1, 80000.0))
        assert created["status"] == "pending"
        assert created["prescription_required"] is True

        fetched = client.get(f"/orders/{created['id']}", headers=CUSTOMER).json()
        assert [item["product_id"] for item in fetched["items"]] == ["prod-001", "prod-003"]

    def test_create_validation_error(self, client):
        response = client.post("/orders", headers=CUSTOMER, json={"items": []})
        assert response.status_code == 400
        assert response.json()["error"]["details"]["missing_fields"] == ["total_amount", "shipping_address"]

    def test_create_insufficient_stock(self, client):
        response = client.post(
            "/orders",
            headers=CUSTOMER,
            json={
                "items": [{"product_id": "prod-002", "quantity": 6, "unit_price": 120000.0}],
                "total_amount": 720000.0,
                "shipping_address": {"city": "Hanoi"},
            },
        )
        assert response.status_code == 422
        assert response.json()["error"]["details"]["requested"] == 6

    def test_other_customer_gets_404(self, client):
        created = _create_order(client)
        assert client.get(f"/orders/{created['id']}", headers=OTHER_CUSTOMER).status_code == 404
        assert client.get(f"/orders/{created['id']}", headers=STAFF).status_code == 200

    def test_list_is_scoped_for_customers(self, client):
        _create_order(client)
        _create_order(client, headers=OTHER_CUSTOMER)

        mine = client.get("/orders", headers=CUSTOMER).json()
        assert mine["pagination"]["total_records"] == 1

        everyone = client.get("/orders", headers=STAFF, params={"limit": 1}).json()
        assert everyone["pagination"]["total_records"] == 2
        assert everyone["pagination"]["total_pages"] == 2
        assert len(everyone["orders"]) == 1

    def test_list_rejects_bad_limit(self, client):
        response = client.get("/orders", headers=CUSTOMER, params={"limit": 500})
        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "pagination"

    def test_status_update_requires_staff(self, client):
        created = _create_order(client)

        forbidden = client.put(f"/orders/{created['id']}/status", headers=CUSTOMER, json={"status": "confirmed"})
        assert forbidden.status_code == 403

        allowed = client.put(f"/orders/{created['id']}/status", headers=STAFF, json={"status": "confirmed"})
        assert allowed.status_code == 200
        assert allowed.json()["status"] == "confirmed"

    def test_cancel_round_trip(self, client, stock_of):
        created = _create_order(client, ("prod-001", 3, 25000.0))
        assert stock_of("prod-001") == 7

        response = client.put(
            f"/orders/{created['id']}/cancel",
            headers=CUSTOMER,
            json={"reason": "Changed my mind", "reason_code": "changed_mind"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        assert response.json()["cancellation_reason_code"] == "changed_mind"
        assert stock_of("prod-001") == 10

        again = client.put(f"/orders/{created['id']}/cancel", headers=CUSTOMER, json={})
        assert again.status_code == 422
        assert again.json()["error"]["details"]["current_status"] == "cancelled"

    def test_cancel_shipped_order(self, client):
        created = _create_order(client)
        client.put(f"/orders/{created['id']}/status", headers=STAFF, json={"status": "shipped"})

        response = client.put(f"/orders/{created['id']}/cancel", headers=CUSTOMER, json={})
        assert response.status_code == 422
        assert "shipped" in response.json()["error"]["message"]
