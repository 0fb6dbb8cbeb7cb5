"""Transition rejections: audit trail for events that arrived in the wrong state.

A rejection is written whenever a valid, authenticated event has no row in
the order transition table. Operators review them; nothing replays them.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront


class RejectionSource(Enum):
    PAYMENT = "payment"
    CARRIER = "carrier"
    ADMIN = "admin"


@storefront.aggregate
class TransitionRejection:
    order_id = Identifier(required=True)
    order_status = String(required=True, max_length=50)
    trigger = String(required=True, max_length=50)
    source_kind = String(required=True, choices=RejectionSource)
    source = String(max_length=255)
    reason = String(max_length=500)
    recorded_at = DateTime(required=True)


@storefront.command(part_of="TransitionRejection")
class RecordTransitionRejection:
    order_id = Identifier(required=True)
    order_status = String(required=True, max_length=50)
    trigger = String(required=True, max_length=50)
    source_kind = String(required=True, choices=RejectionSource)
    source = String(max_length=255)
    reason = String(max_length=500)


@storefront.command_handler(part_of=TransitionRejection)
class TransitionRejectionHandler:
    @handle(RecordTransitionRejection)
    def record_rejection(self, command):
        rejection = TransitionRejection(
            order_id=command.order_id,
            order_status=command.order_status,
            trigger=command.trigger,
            source_kind=command.source_kind,
            source=command.source,
            reason=command.reason,
            recorded_at=datetime.now(UTC),
        )
        current_domain.repository_for(TransitionRejection).add(rejection)
        return str(rejection.id)


def list_rejections(order_id: str | None = None) -> list[TransitionRejection]:
    """Recorded rejections, newest first."""
    query = current_domain.repository_for(TransitionRejection)._dao.query
    if order_id:
        query = query.filter(order_id=order_id)
    return sorted(query.all().items, key=lambda r: r.recorded_at, reverse=True)
