"""HTTP payment gateway adapter.

Talks to a REST gateway that follows the generic contract:

- ``POST {base}/intents`` with ``{order_id, amount, currency}`` returns
  ``{id, redirect_url}``
- ``GET {base}/settlements?start=&end=`` returns ``{results: [{reference,
  amount, status, currency}]}``
- callbacks are HMAC-SHA256 signed with the shared webhook secret

Timeouts, connection errors and 5xx responses become ``GatewayUnavailable``;
the caller decides whether to retry.
"""

from datetime import date
from decimal import Decimal

import requests

from storefront.errors import GatewayUnavailable, InvalidOrder
from storefront.gateway.parsing import parse_generic_callback
from storefront.gateway.port import (
    IntentResult,
    PaymentGateway,
    PaymentNotification,
    SettlementEntry,
    normalize_status,
)
from storefront.utils.logging import get_logger
from storefront.utils.signing import parse_amount

logger = get_logger(__name__)


class HttpGateway(PaymentGateway):
    name = "http"

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        webhook_secret: str,
        timeout: float = 10.0,
        supported_currencies: tuple[str, ...] = ("BRL", "USD", "EUR"),
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(supported_currencies)
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, **extra) -> dict:
        headers = {"Accept": "application/json", **extra}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.Timeout, requests.ConnectionError) as exc:
            logger.warning("gateway_unreachable", url=url, error=str(exc))
            raise GatewayUnavailable("Payment gateway unreachable") from exc

        if response.status_code >= 500:
            logger.warning("gateway_error", url=url, status_code=response.status_code)
            raise GatewayUnavailable(f"Payment gateway returned {response.status_code}")
        if response.status_code >= 400:
            raise InvalidOrder(f"Payment gateway rejected the request ({response.status_code})")
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayUnavailable("Payment gateway returned a malformed response") from exc

    def create_intent(
        self,
        order_id: str,
        amount: Decimal,
        currency: str,
        idempotency_key: str,
    ) -> IntentResult:
        self.validate_order(amount, currency)
        body = self._request(
            "POST",
            "/intents",
            json={"order_id": order_id, "amount": str(amount), "currency": currency.upper()},
            headers=self._headers(**{"Idempotency-Key": idempotency_key}),
        )
        if not body.get("id") or not body.get("redirect_url"):
            raise GatewayUnavailable("Payment gateway returned an incomplete intent")
        return IntentResult(redirect_url=body["redirect_url"], external_reference=str(body["id"]))

    def parse_callback(self, raw_payload: bytes, signature: str | None) -> PaymentNotification:
        return parse_generic_callback(raw_payload, signature, self.webhook_secret, self.name)

    def settlement_report(self, start: date, end: date) -> list[SettlementEntry]:
        body = self._request(
            "GET",
            "/settlements",
            params={"start": start.isoformat(), "end": end.isoformat()},
            headers=self._headers(),
        )
        return [
            SettlementEntry(
                reference=str(row["reference"]),
                amount=parse_amount(row["amount"]),
                status=normalize_status(row["status"]),
                currency=str(row.get("currency", "")).upper(),
            )
            for row in body.get("results", [])
        ]
