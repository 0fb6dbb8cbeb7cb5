"""Shared webhook parsing for carriers that speak the generic contract.

Generic carrier body::

    {"event_id": "optional", "order_reference": "...", "tracking_code": "...",
     "status": "<carrier code>", "location": "...", "description": "...",
     "occurred_at": "2026-01-01T12:00:00Z"}

Either ``order_reference`` or ``tracking_code`` must be present.
"""

from storefront.carrier.port import CarrierAdapter, CarrierEvent
from storefront.errors import InvalidInput
from storefront.utils.signing import load_json, parse_timestamp, require, verify_signature


def event_from_dict(adapter: CarrierAdapter, data: dict) -> CarrierEvent:
    require(data, "status")
    if not data.get("order_reference") and not data.get("tracking_code"):
        raise InvalidInput("Carrier event needs an order_reference or a tracking_code")

    raw_code = str(data["status"])
    return CarrierEvent(
        carrier_code=adapter.code,
        event_code=adapter.normalize(raw_code),
        raw_code=raw_code,
        occurred_at=parse_timestamp(data.get("occurred_at")),
        order_reference=str(data["order_reference"]) if data.get("order_reference") else None,
        tracking_code=str(data["tracking_code"]) if data.get("tracking_code") else None,
        location=data.get("location"),
        description=data.get("description"),
        event_id=str(data["event_id"]) if data.get("event_id") else None,
    )


def parse_generic_webhook(
    adapter: CarrierAdapter,
    raw_payload: bytes,
    signature: str | None,
    secret: str,
) -> CarrierEvent:
    verify_signature(secret, raw_payload, signature)
    return event_from_dict(adapter, load_json(raw_payload))
