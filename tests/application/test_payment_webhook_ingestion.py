"""Application tests for gateway callback ingestion."""

from datetime import UTC, datetime
from decimal import Decimal

import pytest

from storefront.errors import AuthenticityError, InvalidInput
from storefront.order.lookup import get_order
from storefront.order.order import OrderStatus, Trigger
from storefront.order.rejection import list_rejections
from storefront.payment.payment_event import (
    PaymentEventOutcome,
    find_payment_event,
    list_payment_events,
)
from storefront.reconciliation.engine import run_reconciliation
from storefront.webhooks.ingestor import IngestOutcome, WebhookIngestor


@pytest.fixture()
def ingestor():
    return WebhookIngestor()


class TestApprovedPayment:
    def test_approved_callback_pays_the_order_and_reconciles_cleanly(self, gateway, ingestor, order_awaiting_payment):
        order_id = order_awaiting_payment("abc123", amount="150.00")
        body, signature = gateway.simulate_payment("abc123", "approved", "150.00", event_id="evt-1")

        result = ingestor.ingest_payment(body, signature)

        assert result.outcome == IngestOutcome.APPLIED
        assert result.order_id == order_id
        assert get_order(order_id).current_status == OrderStatus.PAID

        event = find_payment_event("evt-1")
        assert event.outcome == PaymentEventOutcome.APPLIED.value
        assert event.order_id == order_id
        assert Decimal(str(event.amount)) == Decimal("150.00")

        today = datetime.now(UTC).date()
        run = run_reconciliation(today, today)
        assert len(run.records) == 1
        assert run.discrepancies == []

    def test_duplicate_delivery_is_acknowledged_once(self, gateway, ingestor, order_awaiting_payment):
        order_id = order_awaiting_payment("abc123")
        body, signature = gateway.build_callback("abc123", "approved", "150.00", event_id="evt-dup")

        first = ingestor.ingest_payment(body, signature)
        second = ingestor.ingest_payment(body, signature)

        assert first.outcome == IngestOutcome.APPLIED
        assert second.outcome == IngestOutcome.DUPLICATE
        assert second.order_id == order_id
        order = get_order(order_id)
        assert [t.trigger for t in order.history()] == [
            Trigger.INTENT_CREATED.value,
            Trigger.PAYMENT_APPROVED.value,
        ]
        assert len(list_payment_events(order_id=order_id)) == 1
        assert list_rejections(order_id) == []

    def test_callback_can_reference_the_order_id(self, gateway, ingestor, order_awaiting_payment):
        order_id = order_awaiting_payment("abc123")
        body, signature = gateway.build_callback(order_id, "approved", "150.00")

        assert ingestor.ingest_payment(body, signature).order_id == order_id

    def test_amount_mismatch_still_applies(self, gateway, ingestor, order_awaiting_payment):
        order_id = order_awaiting_payment("abc123", amount="150.00")
        body, signature = gateway.build_callback("abc123", "approved", "149.99")

        assert ingestor.ingest_payment(body, signature).outcome == IngestOutcome.APPLIED
        assert get_order(order_id).current_status == OrderStatus.PAID


class TestOtherStatuses:
    def test_rejected_callback_fails_the_payment(self, gateway, ingestor, order_awaiting_payment):
        order_id = order_awaiting_payment("ref-r")
        body, signature = gateway.build_callback("ref-r", "rejected", "150.00")

        assert ingestor.ingest_payment(body, signature).outcome == IngestOutcome.APPLIED
        assert get_order(order_id).current_status == OrderStatus.PAYMENT_FAILED

    def test_pending_callback_is_recorded_without_transition(self, gateway, ingestor, order_awaiting_payment):
        order_id = order_awaiting_payment("ref-p")
        body, signature = gateway.build_callback("ref-p", "in_process", "150.00", event_id="evt-p")

        result = ingestor.ingest_payment(body, signature)

        assert result.outcome == IngestOutcome.RECORDED
        assert get_order(order_id).current_status == OrderStatus.AWAITING_PAYMENT
        assert find_payment_event("evt-p").status == "pending"

    def test_refund_of_a_paid_order(self, gateway, ingestor, order_awaiting_payment, advance):
        order_id = order_awaiting_payment("ref-rf")
        advance(order_id, Trigger.PAYMENT_APPROVED)
        body, signature = gateway.build_callback("ref-rf", "refunded", "150.00")

        assert ingestor.ingest_payment(body, signature).outcome == IngestOutcome.APPLIED
        assert get_order(order_id).current_status == OrderStatus.REFUNDED


class TestUnappliedCallbacks:
    def test_illegal_transition_is_recorded_and_acknowledged(self, gateway, ingestor, order_awaiting_payment, advance):
        order_id = order_awaiting_payment("ref-late")
        advance(order_id, Trigger.PAYMENT_REJECTED)
        body, signature = gateway.build_callback("ref-late", "approved", "150.00", event_id="evt-late")

        result = ingestor.ingest_payment(body, signature)

        assert result.outcome == IngestOutcome.ILLEGAL_TRANSITION
        assert get_order(order_id).current_status == OrderStatus.PAYMENT_FAILED
        assert find_payment_event("evt-late").outcome == PaymentEventOutcome.ILLEGAL_TRANSITION.value

        rejections = list_rejections(order_id)
        assert len(rejections) == 1
        assert rejections[0].order_status == OrderStatus.PAYMENT_FAILED.value
        assert rejections[0].trigger == Trigger.PAYMENT_APPROVED.value
        assert rejections[0].source_kind == "payment"
        assert rejections[0].source == "evt-late"

    def test_unmatched_reference_is_recorded(self, gateway, ingestor):
        body, signature = gateway.build_callback("nobody", "approved", "10.00", event_id="evt-u")

        result = ingestor.ingest_payment(body, signature)

        assert result.outcome == IngestOutcome.UNMATCHED
        assert result.order_id is None
        event = find_payment_event("evt-u")
        assert event.outcome == PaymentEventOutcome.UNMATCHED.value
        assert event.order_id is None

    def test_bad_signature_changes_nothing(self, gateway, ingestor, order_awaiting_payment):
        order_id = order_awaiting_payment("abc123")
        body, _ = gateway.build_callback("abc123", "approved", "150.00", event_id="evt-forged")

        with pytest.raises(AuthenticityError):
            ingestor.ingest_payment(body, "0" * 64)

        assert find_payment_event("evt-forged") is None
        assert get_order(order_id).current_status == OrderStatus.AWAITING_PAYMENT

    def test_unknown_status_is_invalid_input(self, gateway, ingestor, order_awaiting_payment):
        order_awaiting_payment("abc123")
        body, signature = gateway.build_callback("abc123", "teleported", "150.00", event_id="evt-x")

        with pytest.raises(InvalidInput):
            ingestor.ingest_payment(body, signature)
        assert find_payment_event("evt-x") is None


class TestConcurrentDelivery:
    def test_same_callback_delivered_in_parallel_applies_once(
        self, gateway, ingestor, order_awaiting_payment, run_together, assert_legal_history
    ):
        order_id = order_awaiting_payment("ref-par")
        body, signature = gateway.build_callback("ref-par", "approved", "150.00", event_id="evt-par")

        results = run_together(*[lambda: ingestor.ingest_payment(body, signature)] * 6)

        outcomes = sorted(r.outcome.value for r in results)
        assert outcomes.count(IngestOutcome.APPLIED.value) == 1
        assert outcomes.count(IngestOutcome.DUPLICATE.value) == 5
        assert len(list_payment_events(order_id=order_id)) == 1

        order = get_order(order_id)
        paid = [t for t in order.history() if t.to_status == OrderStatus.PAID.value]
        assert len(paid) == 1
        assert_legal_history(order)

    def test_conflicting_callbacks_leave_a_legal_history(
        self, gateway, ingestor, order_awaiting_payment, run_together, assert_legal_history
    ):
        order_id = order_awaiting_payment("ref-race")
        approved = gateway.build_callback("ref-race", "approved", "150.00", event_id="evt-ok")
        rejected = gateway.build_callback("ref-race", "rejected", "150.00", event_id="evt-no")

        results = run_together(
            lambda: ingestor.ingest_payment(*approved),
            lambda: ingestor.ingest_payment(*rejected),
        )

        assert sorted(r.outcome.value for r in results) == sorted(
            [IngestOutcome.APPLIED.value, IngestOutcome.ILLEGAL_TRANSITION.value]
        )
        order = get_order(order_id)
        assert order.current_status in (OrderStatus.PAID, OrderStatus.PAYMENT_FAILED)
        assert_legal_history(order)
        assert len(list_payment_events(order_id=order_id)) == 2
        assert len(list_rejections(order_id)) == 1
