"""Faker-based data generators for Locust load test scenarios.

Payloads match the field names of the API's Pydantic request schemas.
Payment callbacks are signed with the ``GATEWAY_WEBHOOK_SECRET`` the
server is started with.
"""

import json
import os
import random
import uuid
from datetime import UTC, datetime

from faker import Faker

from storefront.utils.signing import sign_payload

fake = Faker()

GATEWAY_SECRET = os.environ.get("GATEWAY_WEBHOOK_SECRET", "test-secret")


# ---------- Orders ----------


def customer_id() -> str:
    return f"cust-lt-{uuid.uuid4().hex[:8]}"


def order_data(currency: str = "BRL") -> dict:
    """PlaceOrderRequest payload with 1-4 line items."""
    return {
        "customer_id": customer_id(),
        "currency": currency,
        "items": [
            {
                "product_id": f"prod-{uuid.uuid4().hex[:6]}",
                "quantity": random.randint(1, 3),
                "unit_price": f"{random.uniform(5, 500):.2f}",
            }
            for _ in range(random.randint(1, 4))
        ],
    }


def order_total(payload: dict) -> str:
    cents = sum(round(float(i["unit_price"]) * 100) * i["quantity"] for i in payload["items"])
    return f"{cents / 100:.2f}"


# ---------- Contact ----------


def contact_data() -> dict:
    return {
        "name": fake.name()[:200],
        "email": fake.email(),
        "subject": fake.sentence(nb_words=4)[:200],
        "message": fake.paragraph(nb_sentences=3)[:5000],
    }


# ---------- Webhooks ----------


def payment_callback(reference: str, status: str, amount: str, event_id: str | None = None) -> tuple[bytes, dict]:
    """Signed generic payment callback body and its headers."""
    body = json.dumps(
        {
            "id": event_id or f"evt_lt_{uuid.uuid4().hex[:16]}",
            "data": {
                "external_reference": reference,
                "status": status,
                "amount": amount,
                "currency": "BRL",
                "occurred_at": datetime.now(UTC).isoformat(),
            },
        }
    ).encode()
    return body, {"X-Signature": sign_payload(GATEWAY_SECRET, body), "Content-Type": "application/json"}
