"""Payment gateway port (abstract interface).

Adapters translate one provider's wire format into the shapes below. Core
code only ever sees ``PaymentNotification`` and ``SettlementEntry`` with the
four internal statuses, never a provider vocabulary.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from storefront.errors import InvalidInput, InvalidOrder


class PaymentStatus(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    PENDING = "pending"
    REFUNDED = "refunded"


# Provider vocabulary → internal status
GATEWAY_STATUS_MAP = {
    "approved": PaymentStatus.APPROVED,
    "authorized": PaymentStatus.APPROVED,
    "in_process": PaymentStatus.PENDING,
    "pending": PaymentStatus.PENDING,
    "in_mediation": PaymentStatus.PENDING,
    "rejected": PaymentStatus.REJECTED,
    "cancelled": PaymentStatus.REJECTED,
    "refunded": PaymentStatus.REFUNDED,
    "charged_back": PaymentStatus.REFUNDED,
}


def normalize_status(raw_status: str) -> PaymentStatus:
    try:
        return GATEWAY_STATUS_MAP[raw_status.strip().lower()]
    except (AttributeError, KeyError) as exc:
        raise InvalidInput(f"Unknown payment status: {raw_status!r}") from exc


@dataclass(frozen=True)
class IntentResult:
    """Where to send the customer, and how the gateway will refer to the payment."""

    redirect_url: str
    external_reference: str


@dataclass(frozen=True)
class PaymentNotification:
    """A verified, normalized payment callback."""

    event_id: str
    external_reference: str
    status: PaymentStatus
    raw_status: str
    amount: Decimal
    currency: str
    occurred_at: datetime
    provider: str


@dataclass(frozen=True)
class SettlementEntry:
    """One line of the gateway's settlement report."""

    reference: str
    amount: Decimal
    status: PaymentStatus
    currency: str


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str = "gateway"

    def __init__(self, supported_currencies: tuple[str, ...] = ("BRL", "USD", "EUR")) -> None:
        self.supported_currencies = tuple(c.upper() for c in supported_currencies)

    def validate_order(self, amount: Decimal, currency: str) -> None:
        """Reject orders the gateway cannot take payment for."""
        if amount <= 0:
            raise InvalidOrder("Order total must be positive", amount=str(amount))
        if (currency or "").upper() not in self.supported_currencies:
            raise InvalidOrder(f"Unsupported currency: {currency}", currency=currency)

    @abstractmethod
    def create_intent(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> IntentResult:
        """Create a payment intent.

        Raises ``InvalidOrder`` for non-positive totals or unsupported
        currencies and ``GatewayUnavailable`` when the gateway cannot be reached.
        """
        ...

    @abstractmethod
    def parse_callback(self, raw_payload: bytes, signature: str | None) -> PaymentNotification:
        """Verify and normalize a callback.

        The signature is checked against the raw bytes before any field is
        read; failure raises ``AuthenticityError``.
        """
        ...

    @abstractmethod
    def settlement_report(self, start: date, end: date) -> list[SettlementEntry]:
        """Settled payments with activity between ``start`` and ``end`` (inclusive)."""
        ...
