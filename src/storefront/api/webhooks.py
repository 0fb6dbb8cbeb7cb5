"""Webhook routes for payment feedback and carrier events.

Success is returned only after the event is durably recorded. Any non-2xx
answer asks the sender to redeliver.
"""

from fastapi import APIRouter, Header, Query, Request

from storefront.api.dependencies import run_blocking
from storefront.api.schemas import WebhookAckResponse
from storefront.utils.logging import add_context
from storefront.webhooks.ingestor import IngestResult, WebhookIngestor

webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])

_ingestor = WebhookIngestor()


def _ack(result: IngestResult) -> WebhookAckResponse:
    return WebhookAckResponse(status=result.outcome.value, event_key=result.event_key, order_id=result.order_id)


@webhook_router.post("/payments", response_model=WebhookAckResponse)
async def payment_feedback(
    request: Request,
    x_signature: str | None = Header(default=None),
) -> WebhookAckResponse:
    """Ingest a signed payment-gateway callback."""
    add_context(webhook="payment")
    raw_payload = await request.body()
    return _ack(await run_blocking(_ingestor.ingest_payment, raw_payload, x_signature))


@webhook_router.post("/carriers", response_model=WebhookAckResponse)
async def carrier_event(
    request: Request,
    carrier: str = Query(min_length=1),
    x_signature: str | None = Header(default=None),
) -> WebhookAckResponse:
    """Ingest a signed carrier tracking event."""
    add_context(webhook="carrier", carrier=carrier)
    raw_payload = await request.body()
    return _ack(await run_blocking(_ingestor.ingest_carrier, carrier, raw_payload, x_signature))
