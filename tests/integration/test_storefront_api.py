"""Integration tests for the customer-facing routes."""

import pytest
from protean import current_domain

from storefront.order.order import Order, OrderStatus


def _place(client, customer_id="cust-001", unit_price="150.00", currency="BRL"):
    response = client.post(
        "/orders",
        json={
            "customer_id": customer_id,
            "currency": currency,
            "items": [{"product_id": "prod-1", "quantity": 1, "unit_price": unit_price}],
        },
    )
    assert response.status_code == 201
    return response.json()["order_id"]


class TestOrders:
    def test_place_order(self, client):
        order_id = _place(client)
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.CREATED.value

    def test_empty_basket_is_rejected(self, client):
        response = client.post("/orders", json={"customer_id": "c", "items": []})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    def test_negative_quantity_is_rejected(self, client):
        response = client.post(
            "/orders",
            json={"customer_id": "c", "items": [{"product_id": "p", "quantity": 0, "unit_price": "1"}]},
        )
        assert response.status_code == 400
        assert "items.0.quantity" in response.json()["details"]["fields"]

    def test_retry_of_unfailed_order_conflicts(self, client):
        order_id = _place(client)
        response = client.post(f"/orders/{order_id}/retry")
        assert response.status_code == 409
        assert response.json()["error"] == "illegal_transition"


class TestPaymentIntents:
    def test_create_intent(self, client, gateway):
        order_id = _place(client)

        response = client.post("/payments/intents", json={"order_id": order_id})

        assert response.status_code == 201
        body = response.json()
        assert body["order_id"] == order_id
        assert body["external_reference"].startswith("fake_pay_")
        assert body["redirect_url"].startswith("https://")

    def test_gateway_outage_is_503(self, client, gateway):
        gateway.configure(should_succeed=False)
        order_id = _place(client)

        response = client.post("/payments/intents", json={"order_id": order_id})

        assert response.status_code == 503
        assert current_domain.repository_for(Order).get(order_id).status == OrderStatus.CREATED.value

    def test_unsupported_currency_is_422(self, client, gateway):
        order_id = _place(client, currency="JPY")
        response = client.post("/payments/intents", json={"order_id": order_id})
        assert response.status_code == 422
        assert response.json()["error"] == "invalid_order"

    def test_unknown_order_is_404(self, client, gateway):
        response = client.post("/payments/intents", json={"order_id": "ghost"})
        assert response.status_code == 404


class TestTracking:
    def test_owner_sees_tracking(self, client, shipped_order):
        order_id = shipped_order("ref-t", tracking_code="TRK-T")

        response = client.get(f"/tracking/{order_id}", headers={"X-Customer-Id": "cust-001"})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == OrderStatus.SHIPPED.value
        assert body["tracking_code"] == "TRK-T"
        assert body["events"] == []

    def test_other_customer_gets_not_found(self, client, shipped_order):
        order_id = shipped_order("ref-t")
        response = client.get(f"/tracking/{order_id}", headers={"X-Customer-Id": "someone-else"})
        assert response.status_code == 404

    def test_anonymous_caller_is_unauthenticated(self, client, shipped_order):
        order_id = shipped_order("ref-t")
        response = client.get(f"/tracking/{order_id}")
        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_admin_sees_any_order(self, client, admin_headers, shipped_order):
        order_id = shipped_order("ref-t")
        response = client.get(f"/tracking/{order_id}", headers=admin_headers)
        assert response.status_code == 200


class TestContactRateLimit:
    CONTACT = {"name": "Ana", "email": "ana@example.com", "message": "Hello"}

    def test_eleventh_submission_is_throttled(self, client):
        for _ in range(10):
            assert client.post("/contact", json=self.CONTACT).status_code == 202

        response = client.post("/contact", json=self.CONTACT)

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.json()["error"] == "rate_limited"

    def test_identities_are_counted_separately(self, client):
        for _ in range(10):
            client.post("/contact", json=self.CONTACT, headers={"X-Forwarded-For": "8.8.8.8"})

        response = client.post("/contact", json=self.CONTACT, headers={"X-Forwarded-For": "1.1.1.1"})

        assert response.status_code == 202

    def test_rate_limit_headers_on_success(self, client):
        response = client.post("/contact", json=self.CONTACT)
        assert response.headers["X-RateLimit-Limit"] == "10"
        assert response.headers["X-RateLimit-Remaining"] == "9"

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", ""])
    def test_invalid_email(self, client, email):
        response = client.post("/contact", json={**self.CONTACT, "email": email})
        assert response.status_code == 400


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json()["status"] == "ok"
