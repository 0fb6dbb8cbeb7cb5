"""Shared callback parsing for gateways that speak the generic contract."""

from storefront.gateway.port import PaymentNotification, normalize_status
from storefront.utils.signing import (
    load_json,
    parse_amount,
    parse_timestamp,
    require,
    verify_signature,
)


def parse_generic_callback(
    raw_payload: bytes,
    signature: str | None,
    secret: str,
    provider: str,
) -> PaymentNotification:
    verify_signature(secret, raw_payload, signature)

    payload = load_json(raw_payload)
    require(payload, "id")
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}
    require(data, "external_reference", "status", "amount", "currency")

    raw_status = str(data["status"])
    return PaymentNotification(
        event_id=str(payload["id"]),
        external_reference=str(data["external_reference"]),
        status=normalize_status(raw_status),
        raw_status=raw_status,
        amount=parse_amount(data["amount"]),
        currency=str(data["currency"]).upper(),
        occurred_at=parse_timestamp(data.get("occurred_at")),
        provider=provider,
    )
