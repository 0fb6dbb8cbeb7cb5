"""HTTP carrier adapter with a per-carrier status vocabulary.

Speaks the generic carrier contract:

- ``POST {base}/labels`` with ``{order_id, service_level}`` returns
  ``{tracking_code, label_url}``
- ``GET {base}/tracking/{tracking_code}`` returns ``{events: [...]}`` using
  the generic event fields
- pushed webhooks are HMAC-SHA256 signed with the carrier secret
"""

import requests

from storefront.carrier.parsing import event_from_dict, parse_generic_webhook
from storefront.carrier.port import CarrierAdapter, CarrierEvent, LabelResult, TrackingCode
from storefront.errors import CarrierUnavailable, InvalidInput
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class HttpCarrier(CarrierAdapter):
    def __init__(
        self,
        code: str,
        base_url: str,
        secret: str,
        vocabulary: dict[str, TrackingCode],
        api_key: str | None = None,
        supports_push: bool = True,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(code, vocabulary, supports_push=supports_push)
        self.base_url = base_url.rstrip("/")
        self.secret = secret
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, headers=headers, **kwargs)
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.warning("carrier_unreachable", carrier=self.code, url=url, error=str(exc))
            raise CarrierUnavailable(f"Carrier {self.code} unreachable") from exc

        if response.status_code >= 500:
            logger.warning("carrier_error", carrier=self.code, url=url, status_code=response.status_code)
            raise CarrierUnavailable(f"Carrier {self.code} returned {response.status_code}")
        if response.status_code >= 400:
            raise InvalidInput(f"Carrier {self.code} rejected the request ({response.status_code})")
        try:
            return response.json()
        except ValueError as exc:
            raise CarrierUnavailable(f"Carrier {self.code} returned a malformed response") from exc

    def parse_webhook(self, raw_payload: bytes, signature: str | None) -> CarrierEvent:
        return parse_generic_webhook(self, raw_payload, signature, self.secret)

    def poll_tracking(self, order_reference: str, tracking_code: str | None = None) -> list[CarrierEvent]:
        body = self._request("GET", f"/tracking/{tracking_code or order_reference}")
        return [
            event_from_dict(
                self,
                {"order_reference": order_reference, "tracking_code": tracking_code, **row},
            )
            for row in body.get("events", [])
        ]

    def create_label(self, order_id: str, service_level: str = "standard") -> LabelResult:
        body = self._request("POST", "/labels", json={"order_id": order_id, "service_level": service_level})
        if not body.get("tracking_code"):
            raise CarrierUnavailable(f"Carrier {self.code} returned no tracking code")
        return LabelResult(tracking_code=str(body["tracking_code"]), label_url=str(body.get("label_url", "")))
