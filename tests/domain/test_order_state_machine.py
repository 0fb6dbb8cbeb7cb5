"""Tests for the order transition table."""

import random

import pytest

from storefront.errors import IllegalTransition
from storefront.order.order import (
    TERMINAL_STATUSES,
    Order,
    OrderStatus,
    Trigger,
    next_status,
)

LEGAL_ROWS = [
    (OrderStatus.CREATED, Trigger.INTENT_CREATED, OrderStatus.AWAITING_PAYMENT),
    (OrderStatus.AWAITING_PAYMENT, Trigger.PAYMENT_APPROVED, OrderStatus.PAID),
    (OrderStatus.AWAITING_PAYMENT, Trigger.PAYMENT_REJECTED, OrderStatus.PAYMENT_FAILED),
    (OrderStatus.PAID, Trigger.FULFILLMENT_STARTED, OrderStatus.FULFILLMENT_PENDING),
    (OrderStatus.FULFILLMENT_PENDING, Trigger.CARRIER_DISPATCHED, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, Trigger.CARRIER_DELIVERED, OrderStatus.DELIVERED),
    (OrderStatus.PAID, Trigger.REFUND_APPROVED, OrderStatus.REFUNDED),
    (OrderStatus.SHIPPED, Trigger.REFUND_APPROVED, OrderStatus.REFUNDED),
    (OrderStatus.DELIVERED, Trigger.REFUND_APPROVED, OrderStatus.REFUNDED),
    (OrderStatus.CREATED, Trigger.ADMIN_CANCEL, OrderStatus.CANCELLED),
    (OrderStatus.AWAITING_PAYMENT, Trigger.ADMIN_CANCEL, OrderStatus.CANCELLED),
]

_LEGAL_PAIRS = {(current, trigger) for current, trigger, _ in LEGAL_ROWS}
ILLEGAL_PAIRS = [
    (current, trigger) for current in OrderStatus for trigger in Trigger if (current, trigger) not in _LEGAL_PAIRS
]

# Shortest trigger path from CREATED to each state
_PATHS = {
    OrderStatus.CREATED: [],
    OrderStatus.AWAITING_PAYMENT: [Trigger.INTENT_CREATED],
    OrderStatus.PAID: [Trigger.INTENT_CREATED, Trigger.PAYMENT_APPROVED],
    OrderStatus.FULFILLMENT_PENDING: [Trigger.INTENT_CREATED, Trigger.PAYMENT_APPROVED, Trigger.FULFILLMENT_STARTED],
    OrderStatus.SHIPPED: [
        Trigger.INTENT_CREATED,
        Trigger.PAYMENT_APPROVED,
        Trigger.FULFILLMENT_STARTED,
        Trigger.CARRIER_DISPATCHED,
    ],
    OrderStatus.DELIVERED: [
        Trigger.INTENT_CREATED,
        Trigger.PAYMENT_APPROVED,
        Trigger.FULFILLMENT_STARTED,
        Trigger.CARRIER_DISPATCHED,
        Trigger.CARRIER_DELIVERED,
    ],
    OrderStatus.PAYMENT_FAILED: [Trigger.INTENT_CREATED, Trigger.PAYMENT_REJECTED],
    OrderStatus.REFUNDED: [Trigger.INTENT_CREATED, Trigger.PAYMENT_APPROVED, Trigger.REFUND_APPROVED],
    OrderStatus.CANCELLED: [Trigger.ADMIN_CANCEL],
}


def _order_in(status: OrderStatus) -> Order:
    order = Order.create(
        customer_id="cust-sm",
        items_data=[{"product_id": "prod-1", "quantity": 1, "unit_price": "10.00"}],
        currency="BRL",
    )
    for trigger in _PATHS[status]:
        order.transition(trigger)
    order._events.clear()
    return order


class TestLegalTransitions:
    @pytest.mark.parametrize("current,trigger,target", LEGAL_ROWS)
    def test_row_applies(self, current, trigger, target):
        order = _order_in(current)
        assert order.transition(trigger, source="test") == target
        assert order.status == target.value

    @pytest.mark.parametrize("current,trigger,target", LEGAL_ROWS)
    def test_row_is_recorded_in_history(self, current, trigger, target):
        order = _order_in(current)
        order.transition(trigger, source="src-1")
        last = order.history()[-1]
        assert (last.from_status, last.to_status, last.trigger, last.source) == (
            current.value,
            target.value,
            trigger.value,
            "src-1",
        )


class TestIllegalTransitions:
    @pytest.mark.parametrize("current,trigger", ILLEGAL_PAIRS)
    def test_missing_row_is_rejected_and_state_kept(self, current, trigger):
        assert next_status(current, trigger) is None
        order = _order_in(current)
        history_before = len(order.history())

        with pytest.raises(IllegalTransition) as exc:
            order.transition(trigger)

        assert exc.value.current == current.value
        assert exc.value.trigger == trigger.value
        assert order.status == current.value
        assert len(order.history()) == history_before
        assert order._events == []

    def test_cannot_deliver_a_created_order(self):
        order = _order_in(OrderStatus.CREATED)
        with pytest.raises(IllegalTransition):
            order.transition(Trigger.CARRIER_DELIVERED)

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES - {OrderStatus.DELIVERED}, key=lambda s: s.value))
    def test_terminal_states_have_no_exits(self, status):
        assert all(next_status(status, trigger) is None for trigger in Trigger)

    def test_delivered_only_exits_by_refund(self):
        exits = {t for t in Trigger if next_status(OrderStatus.DELIVERED, t) is not None}
        assert exits == {Trigger.REFUND_APPROVED}


class TestRandomWalks:
    def test_every_applied_history_is_a_walk_of_the_table(self):
        rng = random.Random(20240611)
        triggers = list(Trigger)
        for _ in range(200):
            order = _order_in(OrderStatus.CREATED)
            for _ in range(12):
                try:
                    order.transition(rng.choice(triggers))
                except IllegalTransition:
                    pass

            previous = OrderStatus.CREATED.value
            for step in order.history():
                assert step.from_status == previous
                assert next_status(OrderStatus(step.from_status), Trigger(step.trigger)) == OrderStatus(
                    step.to_status
                )
                previous = step.to_status
            assert order.status == previous
