"""Fake carrier adapter: deterministic carrier for testing and development.

Issues fake labels, serves queued tracking events to ``poll_tracking`` and
signs webhook bodies with its shared secret. Configurable success/failure
behavior for integration testing.
"""

import json
from datetime import UTC, datetime
from uuid import uuid4

from storefront.carrier.parsing import event_from_dict, parse_generic_webhook
from storefront.carrier.port import CarrierAdapter, CarrierEvent, LabelResult
from storefront.carrier.vocabularies import GENERIC
from storefront.errors import CarrierUnavailable
from storefront.utils.signing import sign_payload


class FakeCarrier(CarrierAdapter):
    """Fake carrier that always succeeds by default."""

    def __init__(
        self,
        code: str = "fake",
        secret: str = "test-secret",
        supports_push: bool = True,
        vocabulary: dict | None = None,
    ):
        super().__init__(code, vocabulary or GENERIC, supports_push=supports_push)
        self.secret = secret
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.calls: list[dict] = []
        self._scheduled: dict[str, list[dict]] = {}

    def configure(self, should_succeed: bool = True, failure_reason: str = "Carrier unavailable"):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def parse_webhook(self, raw_payload: bytes, signature: str | None) -> CarrierEvent:
        return parse_generic_webhook(self, raw_payload, signature, self.secret)

    def poll_tracking(self, order_reference: str, tracking_code: str | None = None) -> list[CarrierEvent]:
        self.calls.append({"method": "poll_tracking", "order_reference": order_reference})
        if not self.should_succeed:
            raise CarrierUnavailable(self.failure_reason)
        key = tracking_code or order_reference
        return [
            event_from_dict(self, {"order_reference": order_reference, "tracking_code": tracking_code, **data})
            for data in self._scheduled.get(key, [])
        ]

    def create_label(self, order_id: str, service_level: str = "standard") -> LabelResult:
        self.calls.append({"method": "create_label", "order_id": order_id, "service_level": service_level})
        if not self.should_succeed:
            raise CarrierUnavailable(self.failure_reason)
        tracking_code = f"FAKE-{uuid4().hex[:12].upper()}"
        return LabelResult(
            tracking_code=tracking_code,
            label_url=f"https://fake-carrier.example.com/labels/{tracking_code}.pdf",
        )

    # -------------------------------------------------------------------
    # Test and demo helpers
    # -------------------------------------------------------------------
    def schedule_event(self, key: str, status: str, occurred_at: datetime | None = None, **fields) -> None:
        """Queue an event ``poll_tracking`` will report for ``key`` (tracking code or order id)."""
        self._scheduled.setdefault(key, []).append(
            {"status": status, "occurred_at": (occurred_at or datetime.now(UTC)).isoformat(), **fields}
        )

    def sign(self, raw_payload: bytes) -> str:
        return sign_payload(self.secret, raw_payload)

    def build_webhook(self, status: str, occurred_at: datetime | None = None, **fields) -> tuple[bytes, str]:
        """A signed webhook body and its signature."""
        body = json.dumps(
            {"status": status, "occurred_at": (occurred_at or datetime.now(UTC)).isoformat(), **fields}
        ).encode()
        return body, self.sign(body)
