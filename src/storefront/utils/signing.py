"""HMAC-SHA256 signing of raw webhook bodies, and the generic callback body.

Generic callback body::

    {"id": "<event id>",
     "data": {"external_reference": "...", "status": "approved",
              "amount": 150.00, "currency": "BRL",
              "occurred_at": "2026-01-01T12:00:00Z"}}
"""

import hashlib
import hmac
import json
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation

from storefront.errors import AuthenticityError, InvalidInput


def sign_payload(secret: str, raw_payload: bytes) -> str:
    return hmac.new(secret.encode(), raw_payload, hashlib.sha256).hexdigest()


def verify_signature(secret: str, raw_payload: bytes, signature: str | None) -> None:
    if not signature or not secret:
        raise AuthenticityError("Missing signature")
    if signature.startswith("sha256="):
        signature = signature[len("sha256=") :]
    expected = sign_payload(secret, raw_payload)
    if not hmac.compare_digest(expected, signature.strip().lower()):
        raise AuthenticityError("Signature mismatch")


def load_json(raw_payload: bytes) -> dict:
    try:
        payload = json.loads(raw_payload, parse_float=Decimal)
    except (TypeError, ValueError) as exc:
        raise InvalidInput("Payload is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidInput("Payload must be a JSON object")
    return payload


def parse_amount(value) -> Decimal:
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInput(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise InvalidInput(f"Invalid amount: {value!r}")
    return amount


def parse_timestamp(value) -> datetime:
    """ISO-8601 timestamp, assumed UTC when no offset is given. Missing means now."""
    if value in (None, ""):
        return datetime.now(UTC)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise InvalidInput(f"Invalid timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def require(data: dict, *fields: str) -> None:
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise InvalidInput(f"Missing required fields: {', '.join(missing)}", fields=missing)
