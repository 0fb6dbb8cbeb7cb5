"""Webhook ingestion: verify, deduplicate, record, then transition.

Every delivery moves through Received → Verified → Duplicate-or-New →
Applied. Authenticity failures stop before anything is stored. A duplicate
is acknowledged without reapplying. A new event is always recorded, even
when the order cannot take the transition it implies; that case is written
to the rejection log and acknowledged.
"""

from dataclasses import dataclass
from enum import Enum

from protean.utils.globals import current_domain

from storefront.carrier import get_carrier
from storefront.carrier.port import CarrierEvent, TrackingCode
from storefront.errors import AuthenticityError, IllegalTransition, OrderNotFound
from storefront.gateway import get_gateway
from storefront.gateway.port import PaymentNotification, PaymentStatus
from storefront.locking import event_locks
from storefront.order.lookup import find_order_for_payment, find_order_for_shipment
from storefront.order.order import Order, Trigger
from storefront.order.rejection import RejectionSource
from storefront.order.transitions import (
    TouchPaymentActivity,
    apply_order_transition,
    process_under_order_lock,
)
from storefront.payment.payment_event import (
    RecordPaymentEvent,
    SettlePaymentEvent,
    find_payment_event,
)
from storefront.tracking.aggregator import record_event
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class IngestOutcome(Enum):
    APPLIED = "applied"
    RECORDED = "recorded"
    ILLEGAL_TRANSITION = "illegal_transition"
    UNMATCHED = "unmatched"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class IngestResult:
    outcome: IngestOutcome
    event_key: str
    order_id: str | None = None


_PAYMENT_TRIGGERS = {
    PaymentStatus.APPROVED: Trigger.PAYMENT_APPROVED,
    PaymentStatus.REJECTED: Trigger.PAYMENT_REJECTED,
    PaymentStatus.REFUNDED: Trigger.REFUND_APPROVED,
}

_CARRIER_TRIGGERS = {
    TrackingCode.DISPATCHED: Trigger.CARRIER_DISPATCHED,
    TrackingCode.DELIVERED: Trigger.CARRIER_DELIVERED,
}


class WebhookIngestor:
    """Turns at-least-once webhook deliveries into exactly-once effects."""

    # -------------------------------------------------------------------
    # Payment callbacks
    # -------------------------------------------------------------------
    def ingest_payment(self, raw_payload: bytes, signature: str | None) -> IngestResult:
        gateway = get_gateway()
        try:
            notification = gateway.parse_callback(raw_payload, signature)
        except AuthenticityError:
            logger.warning("webhook_rejected_signature", kind="payment", provider=gateway.name)
            raise

        logger.info(
            "webhook_verified",
            kind="payment",
            provider=notification.provider,
            event_id=notification.event_id,
            reference=notification.external_reference,
            status=notification.status.value,
        )

        with event_locks.hold(f"payment:{notification.event_id}"):
            existing = find_payment_event(notification.event_id)
            if existing is not None and existing.is_settled:
                logger.info(
                    "webhook_duplicate",
                    kind="payment",
                    provider=notification.provider,
                    event_id=notification.event_id,
                    order_id=existing.order_id,
                )
                return IngestResult(IngestOutcome.DUPLICATE, notification.event_id, existing.order_id)

            order = find_order_for_payment(notification.external_reference)
            order_id = str(order.id) if order else None
            if existing is None:
                current_domain.process(
                    RecordPaymentEvent(
                        event_id=notification.event_id,
                        provider=notification.provider,
                        external_reference=notification.external_reference,
                        status=notification.status.value,
                        raw_status=notification.raw_status,
                        amount=float(notification.amount),
                        currency=notification.currency,
                        order_id=order_id,
                        occurred_at=notification.occurred_at,
                    ),
                    asynchronous=False,
                )

            outcome = self._apply_payment(notification, order)
            current_domain.process(
                SettlePaymentEvent(event_id=notification.event_id, outcome=outcome.value, order_id=order_id),
                asynchronous=False,
            )

        return IngestResult(outcome, notification.event_id, order_id)

    def _apply_payment(self, notification: PaymentNotification, order: Order | None) -> IngestOutcome:
        if order is None:
            logger.warning(
                "webhook_unmatched",
                kind="payment",
                provider=notification.provider,
                event_id=notification.event_id,
                reference=notification.external_reference,
            )
            return IngestOutcome.UNMATCHED

        order_id = str(order.id)
        trigger = _PAYMENT_TRIGGERS.get(notification.status)
        if trigger is None:
            process_under_order_lock(order_id, TouchPaymentActivity(order_id=order_id))
            logger.info(
                "webhook_recorded",
                kind="payment",
                event_id=notification.event_id,
                order_id=order_id,
                status=notification.status.value,
            )
            return IngestOutcome.RECORDED

        if trigger == Trigger.PAYMENT_APPROVED and (
            notification.amount != order.total or notification.currency != order.currency
        ):
            # Applied anyway; the next reconciliation run reports the drift.
            logger.warning(
                "payment_amount_mismatch",
                event_id=notification.event_id,
                order_id=order_id,
                expected=str(order.total),
                expected_currency=order.currency,
                received=str(notification.amount),
                received_currency=notification.currency,
            )

        try:
            apply_order_transition(
                order_id,
                trigger,
                source=notification.event_id,
                source_kind=RejectionSource.PAYMENT,
            )
        except IllegalTransition:
            return IngestOutcome.ILLEGAL_TRANSITION

        logger.info(
            "webhook_applied",
            kind="payment",
            provider=notification.provider,
            event_id=notification.event_id,
            order_id=order_id,
            trigger=trigger.value,
        )
        return IngestOutcome.APPLIED

    # -------------------------------------------------------------------
    # Carrier events
    # -------------------------------------------------------------------
    def ingest_carrier(self, carrier_code: str, raw_payload: bytes, signature: str | None) -> IngestResult:
        adapter = get_carrier(carrier_code)
        try:
            event = adapter.parse_webhook(raw_payload, signature)
        except AuthenticityError:
            logger.warning("webhook_rejected_signature", kind="carrier", carrier=carrier_code)
            raise

        logger.info(
            "webhook_verified",
            kind="carrier",
            carrier=carrier_code,
            event_key=event.event_key,
            raw_code=event.raw_code,
        )
        return self.apply_carrier_event(event)

    def apply_carrier_event(self, event: CarrierEvent) -> IngestResult:
        """Record a verified (pushed or polled) carrier event and apply its transition."""
        order = find_order_for_shipment(event.order_reference, event.tracking_code)
        if order is None:
            logger.warning(
                "webhook_unmatched",
                kind="carrier",
                carrier=event.carrier_code,
                event_key=event.event_key,
                order_reference=event.order_reference,
                tracking_code=event.tracking_code,
            )
            raise OrderNotFound("No order matches this carrier event")

        order_id = str(order.id)
        if not record_event(order_id, event):
            logger.info("webhook_duplicate", kind="carrier", event_key=event.event_key, order_id=order_id)
            return IngestResult(IngestOutcome.DUPLICATE, event.event_key, order_id)

        if event.event_code == TrackingCode.UNCLASSIFIED:
            logger.warning(
                "carrier_code_unclassified",
                carrier=event.carrier_code,
                raw_code=event.raw_code,
                order_id=order_id,
            )

        trigger = _CARRIER_TRIGGERS.get(event.event_code)
        if trigger is None:
            logger.info("webhook_recorded", kind="carrier", event_key=event.event_key, order_id=order_id)
            return IngestResult(IngestOutcome.RECORDED, event.event_key, order_id)

        try:
            apply_order_transition(
                order_id,
                trigger,
                source=event.event_key,
                source_kind=RejectionSource.CARRIER,
            )
        except IllegalTransition:
            return IngestResult(IngestOutcome.ILLEGAL_TRANSITION, event.event_key, order_id)

        logger.info(
            "webhook_applied",
            kind="carrier",
            carrier=event.carrier_code,
            event_key=event.event_key,
            order_id=order_id,
            trigger=trigger.value,
        )
        return IngestResult(IngestOutcome.APPLIED, event.event_key, order_id)
