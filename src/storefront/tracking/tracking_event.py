"""TrackingEvent aggregate: append-only carrier milestones per order.

Identity is the event key (carrier event id or content fingerprint), so a
redelivered or re-polled milestone is stored once.
"""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from storefront.carrier.port import TrackingCode
from storefront.domain import storefront


@storefront.aggregate
class TrackingEvent:
    event_key = String(identifier=True, required=True, max_length=255)
    order_id = Identifier(required=True)
    carrier_code = String(required=True, max_length=50)
    event_code = String(required=True, choices=TrackingCode)
    raw_code = String(required=True, max_length=100)
    tracking_code = String(max_length=255)
    location = String(max_length=200)
    description = String(max_length=500)
    occurred_at = DateTime(required=True)
    received_at = DateTime(required=True)


@storefront.command(part_of="TrackingEvent")
class RecordTrackingEvent:
    event_key = String(required=True, max_length=255)
    order_id = Identifier(required=True)
    carrier_code = String(required=True, max_length=50)
    event_code = String(required=True, choices=TrackingCode)
    raw_code = String(required=True, max_length=100)
    tracking_code = String(max_length=255)
    location = String(max_length=200)
    description = String(max_length=500)
    occurred_at = DateTime(required=True)


@storefront.command_handler(part_of=TrackingEvent)
class TrackingEventHandler:
    @handle(RecordTrackingEvent)
    def record_tracking_event(self, command):
        """Insert the event if absent. Returns True when a new record was written."""
        repo = current_domain.repository_for(TrackingEvent)
        try:
            repo.get(command.event_key)
            return False
        except ObjectNotFoundError:
            pass

        repo.add(
            TrackingEvent(
                event_key=command.event_key,
                order_id=command.order_id,
                carrier_code=command.carrier_code,
                event_code=command.event_code,
                raw_code=command.raw_code,
                tracking_code=command.tracking_code,
                location=command.location,
                description=command.description,
                occurred_at=command.occurred_at,
                received_at=datetime.now(UTC),
            )
        )
        return True
