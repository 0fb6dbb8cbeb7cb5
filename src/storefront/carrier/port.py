"""Carrier port: abstract interface for shipping carrier integrations.

All carrier adapters implement this interface. Core code programs against
the port and the fixed ``TrackingCode`` vocabulary; each adapter owns the
mapping from its carrier's own codes.
"""

import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TrackingCode(Enum):
    DISPATCHED = "dispatched"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    EXCEPTION = "exception"
    RETURNED = "returned"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class CarrierEvent:
    """A verified, normalized carrier milestone."""

    carrier_code: str
    event_code: TrackingCode
    raw_code: str
    occurred_at: datetime
    order_reference: str | None = None
    tracking_code: str | None = None
    location: str | None = None
    description: str | None = None
    event_id: str | None = None

    @property
    def event_key(self) -> str:
        """Deduplication key: the carrier's event id, else a content fingerprint."""
        if self.event_id:
            return f"{self.carrier_code}:{self.event_id}"
        fingerprint = "|".join(
            [
                self.carrier_code,
                self.tracking_code or self.order_reference or "",
                self.raw_code,
                self.occurred_at.isoformat(),
            ]
        )
        return f"{self.carrier_code}:{hashlib.sha256(fingerprint.encode()).hexdigest()[:32]}"


@dataclass(frozen=True)
class LabelResult:
    tracking_code: str
    label_url: str


class CarrierAdapter(ABC):
    """Abstract interface for carrier adapters."""

    def __init__(self, code: str, vocabulary: dict[str, TrackingCode], supports_push: bool = True) -> None:
        self.code = code
        self.vocabulary = {k.lower(): v for k, v in vocabulary.items()}
        self.supports_push = supports_push

    def normalize(self, raw_code: str) -> TrackingCode:
        """Map a carrier code to the internal vocabulary. Unknown codes are kept as UNCLASSIFIED."""
        return self.vocabulary.get((raw_code or "").strip().lower(), TrackingCode.UNCLASSIFIED)

    @abstractmethod
    def parse_webhook(self, raw_payload: bytes, signature: str | None) -> CarrierEvent:
        """Verify and normalize a pushed carrier event.

        Raises ``AuthenticityError`` before reading any field when the
        signature does not match.
        """
        ...

    @abstractmethod
    def poll_tracking(self, order_reference: str, tracking_code: str | None = None) -> list[CarrierEvent]:
        """Fetch the shipment's events from the carrier (for carriers without push)."""
        ...

    @abstractmethod
    def create_label(self, order_id: str, service_level: str = "standard") -> LabelResult:
        """Ask the carrier for a shipping label.

        Raises ``CarrierUnavailable`` when the carrier cannot be reached.
        """
        ...
