"""PaymentEvent aggregate: the processed-event log for gateway callbacks.

Identity is the gateway's own event id, so the repository itself refuses a
second record for the same delivery. An event stays in RECEIVED until the
ingestor has finished with it; a redelivery of an event that never left
RECEIVED is processed again instead of being acknowledged as a duplicate.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.gateway.port import PaymentStatus


class PaymentEventOutcome(Enum):
    RECEIVED = "received"
    APPLIED = "applied"
    RECORDED = "recorded"  # valid event, no state change required
    ILLEGAL_TRANSITION = "illegal_transition"
    UNMATCHED = "unmatched"


@storefront.aggregate
class PaymentEvent:
    event_id = String(identifier=True, required=True, max_length=255)
    provider = String(required=True, max_length=50)
    external_reference = String(required=True, max_length=255)
    status = String(required=True, choices=PaymentStatus)
    raw_status = String(max_length=50)
    amount = Float(required=True)
    currency = String(max_length=3)
    order_id = Identifier()
    occurred_at = DateTime(required=True)
    received_at = DateTime(required=True)
    outcome = String(choices=PaymentEventOutcome, default=PaymentEventOutcome.RECEIVED.value)

    @property
    def is_settled(self) -> bool:
        return self.outcome != PaymentEventOutcome.RECEIVED.value


@storefront.command(part_of="PaymentEvent")
class RecordPaymentEvent:
    event_id = String(required=True, max_length=255)
    provider = String(required=True, max_length=50)
    external_reference = String(required=True, max_length=255)
    status = String(required=True, choices=PaymentStatus)
    raw_status = String(max_length=50)
    amount = Float(required=True)
    currency = String(max_length=3)
    order_id = Identifier()
    occurred_at = DateTime(required=True)


@storefront.command(part_of="PaymentEvent")
class SettlePaymentEvent:
    event_id = String(required=True, max_length=255)
    outcome = String(required=True, choices=PaymentEventOutcome)
    order_id = Identifier()


@storefront.command_handler(part_of=PaymentEvent)
class PaymentEventHandler:
    @handle(RecordPaymentEvent)
    def record_payment_event(self, command):
        """Insert the event if absent. Returns True when a new record was written."""
        repo = current_domain.repository_for(PaymentEvent)
        if find_payment_event(command.event_id) is not None:
            return False

        repo.add(
            PaymentEvent(
                event_id=command.event_id,
                provider=command.provider,
                external_reference=command.external_reference,
                status=command.status,
                raw_status=command.raw_status,
                amount=command.amount,
                currency=command.currency,
                order_id=command.order_id,
                occurred_at=command.occurred_at,
                received_at=datetime.now(UTC),
            )
        )
        return True

    @handle(SettlePaymentEvent)
    def settle_payment_event(self, command):
        repo = current_domain.repository_for(PaymentEvent)
        event = repo.get(command.event_id)
        event.outcome = command.outcome
        if command.order_id:
            event.order_id = command.order_id
        repo.add(event)
        return event.outcome


def find_payment_event(event_id: str) -> PaymentEvent | None:
    try:
        return current_domain.repository_for(PaymentEvent).get(event_id)
    except ObjectNotFoundError:
        return None


def list_payment_events(order_id: str | None = None, reference: str | None = None) -> list[PaymentEvent]:
    """Recorded callbacks in the order they occurred."""
    query = current_domain.repository_for(PaymentEvent)._dao.query
    if order_id:
        query = query.filter(order_id=order_id)
    if reference:
        query = query.filter(external_reference=reference)
    return sorted(query.all().items, key=lambda e: (e.occurred_at, e.received_at))
