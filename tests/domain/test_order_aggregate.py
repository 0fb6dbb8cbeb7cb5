"""Tests for Order aggregate creation and derived values."""

from decimal import Decimal

import pytest
from protean.exceptions import ValidationError

from storefront.order.events import OrderPlaced, OrderTransitioned, PaymentIntentRecorded
from storefront.order.order import Order, OrderStatus, Trigger


def _make_order(**overrides):
    defaults = {
        "customer_id": "cust-001",
        "items_data": [
            {"product_id": "prod-1", "quantity": 3, "unit_price": "33.30"},
            {"product_id": "prod-2", "quantity": 1, "unit_price": "0.10"},
        ],
        "currency": "brl",
    }
    defaults.update(overrides)
    return Order.create(**defaults)


class TestOrderCreation:
    def test_starts_in_created(self):
        order = _make_order()
        assert order.status == OrderStatus.CREATED.value

    def test_total_is_exact_sum_of_line_items(self):
        order = _make_order()
        assert order.total == Decimal("100.00")

    def test_currency_is_uppercased(self):
        order = _make_order()
        assert order.currency == "BRL"

    def test_adds_line_items(self):
        order = _make_order()
        assert len(order.items) == 2
        assert {str(i.product_id) for i in order.items} == {"prod-1", "prod-2"}

    def test_raises_order_placed(self):
        order = _make_order()
        assert len(order._events) == 1
        event = order._events[0]
        assert isinstance(event, OrderPlaced)
        assert event.item_count == 2
        assert event.currency == "BRL"

    def test_requires_line_items(self):
        with pytest.raises(ValidationError):
            _make_order(items_data=[])

    def test_retry_link(self):
        order = _make_order(retry_of="ord-failed")
        assert str(order.retry_of) == "ord-failed"

    def test_starts_with_empty_history(self):
        order = _make_order()
        assert order.history() == []


class TestPaymentIntent:
    def test_record_intent_moves_to_awaiting_payment(self):
        order = _make_order()
        order._events.clear()
        order.record_payment_intent("ref-1", "https://gateway.example/ref-1")

        assert order.status == OrderStatus.AWAITING_PAYMENT.value
        assert order.payment_reference == "ref-1"
        assert order.payment_redirect_url == "https://gateway.example/ref-1"
        assert order.payment_activity_at is not None

    def test_record_intent_raises_events(self):
        order = _make_order()
        order._events.clear()
        order.record_payment_intent("ref-1", "https://gateway.example/ref-1")

        assert [type(e) for e in order._events] == [OrderTransitioned, PaymentIntentRecorded]

    def test_non_payment_trigger_leaves_activity_untouched(self):
        order = _make_order()
        order.record_payment_intent("ref-1", "https://gateway.example/ref-1")
        order.transition(Trigger.PAYMENT_APPROVED)
        before = order.payment_activity_at
        order.transition(Trigger.FULFILLMENT_STARTED)
        assert order.payment_activity_at == before
