"""Tracking aggregator: per-order carrier history in occurred-at order.

Events are stored as they arrive; history is always rebuilt sorted by
occurred-at (ties by received-at), so a late, past-dated event lands in its
correct position.
"""

from dataclasses import dataclass
from datetime import datetime

from protean.utils.globals import current_domain

from storefront.carrier.port import CarrierEvent
from storefront.locking import event_locks
from storefront.tracking.tracking_event import RecordTrackingEvent, TrackingEvent


@dataclass(frozen=True)
class TrackingSummary:
    order_id: str
    event_code: str | None
    raw_code: str | None
    location: str | None
    last_event_at: datetime | None
    event_count: int


def _sort_key(event: TrackingEvent):
    return (event.occurred_at, event.received_at, event.event_key)


def record_event(order_id: str, event: CarrierEvent) -> bool:
    """Store a carrier event for an order. Returns False if it was already stored."""
    with event_locks.hold(f"tracking:{event.event_key}"):
        return current_domain.process(
            RecordTrackingEvent(
                event_key=event.event_key,
                order_id=str(order_id),
                carrier_code=event.carrier_code,
                event_code=event.event_code.value,
                raw_code=event.raw_code,
                tracking_code=event.tracking_code,
                location=event.location,
                description=event.description,
                occurred_at=event.occurred_at,
            ),
            asynchronous=False,
        )


def get_history(order_id: str) -> list[TrackingEvent]:
    """All events of an order, earliest first. A fresh list on every call."""
    events = current_domain.repository_for(TrackingEvent)._dao.query.filter(order_id=str(order_id)).all().items
    return sorted(events, key=_sort_key)


def current_status(order_id: str) -> TrackingSummary:
    history = get_history(order_id)
    if not history:
        return TrackingSummary(str(order_id), None, None, None, None, 0)
    last = history[-1]
    return TrackingSummary(
        order_id=str(order_id),
        event_code=last.event_code,
        raw_code=last.raw_code,
        location=last.location,
        last_event_at=last.occurred_at,
        event_count=len(history),
    )
