"""Configurable fake payment gateway for development and testing.

Keeps its own settlement ledger in memory so reconciliation has something
independent to compare against. ``simulate_payment`` plays the part of the
customer finishing checkout: it updates that ledger and returns a signed
callback body, exactly what the real gateway would POST back.
"""

import json
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from uuid import uuid4

from storefront.errors import GatewayUnavailable
from storefront.gateway.parsing import parse_generic_callback
from storefront.gateway.port import (
    IntentResult,
    PaymentGateway,
    PaymentNotification,
    PaymentStatus,
    SettlementEntry,
    normalize_status,
)
from storefront.utils.signing import sign_payload


@dataclass
class _LedgerLine:
    reference: str
    amount: Decimal
    status: PaymentStatus
    currency: str
    settled_at: datetime


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    name = "fake"

    def __init__(
        self,
        webhook_secret: str = "test-secret",
        supported_currencies: tuple[str, ...] = ("BRL", "USD", "EUR"),
    ) -> None:
        super().__init__(supported_currencies)
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []
        self.ledger: dict[str, _LedgerLine] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_intent(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> IntentResult:
        self.calls.append(
            {
                "method": "create_intent",
                "order_id": order_id,
                "amount": amount,
                "currency": currency,
                "idempotency_key": idempotency_key,
            }
        )
        self.validate_order(amount, currency)
        if not self.should_succeed:
            raise GatewayUnavailable(self.failure_reason)

        reference = f"fake_pay_{uuid4().hex[:12]}"
        self.record_settlement(reference, amount, "pending", currency)
        return IntentResult(
            redirect_url=f"https://gateway.example/checkout/{reference}",
            external_reference=reference,
        )

    def parse_callback(self, raw_payload: bytes, signature: str | None) -> PaymentNotification:
        return parse_generic_callback(raw_payload, signature, self.webhook_secret, self.name)

    def settlement_report(self, start: date, end: date) -> list[SettlementEntry]:
        self.calls.append({"method": "settlement_report", "start": start, "end": end})
        if not self.should_succeed:
            raise GatewayUnavailable(self.failure_reason)
        return [
            SettlementEntry(
                reference=line.reference,
                amount=line.amount,
                status=line.status,
                currency=line.currency,
            )
            for line in sorted(self.ledger.values(), key=lambda line: line.reference)
            if start <= line.settled_at.date() <= end
        ]

    # -------------------------------------------------------------------
    # Test and demo helpers
    # -------------------------------------------------------------------
    def record_settlement(
        self,
        reference: str,
        amount,
        status: str,
        currency: str = "BRL",
        settled_at: datetime | None = None,
    ) -> None:
        """Put (or overwrite) a line in the gateway-side ledger."""
        self.ledger[reference] = _LedgerLine(
            reference=reference,
            amount=Decimal(str(amount)),
            status=normalize_status(status),
            currency=currency.upper(),
            settled_at=settled_at or datetime.now(UTC),
        )

    def sign(self, raw_payload: bytes) -> str:
        return sign_payload(self.webhook_secret, raw_payload)

    def build_callback(
        self,
        reference: str,
        status: str,
        amount,
        currency: str = "BRL",
        event_id: str | None = None,
        occurred_at: datetime | None = None,
    ) -> tuple[bytes, str]:
        """A signed generic callback body and its signature."""
        body = json.dumps(
            {
                "id": event_id or f"evt_{uuid4().hex[:16]}",
                "data": {
                    "external_reference": reference,
                    "status": status,
                    "amount": str(amount),
                    "currency": currency,
                    "occurred_at": (occurred_at or datetime.now(UTC)).isoformat(),
                },
            }
        ).encode()
        return body, self.sign(body)

    def simulate_payment(
        self,
        reference: str,
        status: str,
        amount,
        currency: str = "BRL",
        event_id: str | None = None,
    ) -> tuple[bytes, str]:
        """Settle a payment on the gateway side and return its signed callback."""
        self.record_settlement(reference, amount, status, currency)
        return self.build_callback(reference, status, amount, currency, event_id=event_id)
