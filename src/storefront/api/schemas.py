"""Pydantic API schemas for the storefront pipeline.

These are the external API contracts, kept separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class LineItemRequest(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)


class PlaceOrderRequest(BaseModel):
    customer_id: str = Field(min_length=1)
    currency: str = Field(default="BRL", min_length=3, max_length=3)
    items: list[LineItemRequest] = Field(min_length=1)


class CreateIntentRequest(BaseModel):
    order_id: str = Field(min_length=1)


class ContactRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=254)
    subject: str | None = Field(default=None, max_length=200)
    message: str = Field(min_length=1, max_length=5000)


class TransitionRequest(BaseModel):
    status: str


class LabelRequest(BaseModel):
    carrier: str | None = None
    service_level: str = "standard"


class ReconciliationRunRequest(BaseModel):
    start: date
    end: date


class ConfigureFakeRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Unavailable"


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str


class OrderIdResponse(BaseModel):
    order_id: str


class IntentResponse(BaseModel):
    order_id: str
    redirect_url: str
    external_reference: str


class WebhookAckResponse(BaseModel):
    status: str
    event_key: str
    order_id: str | None = None


class TrackingEventResponse(BaseModel):
    event_code: str
    raw_code: str
    carrier_code: str
    location: str | None = None
    description: str | None = None
    occurred_at: datetime
    received_at: datetime


class TrackingResponse(BaseModel):
    order_id: str
    status: str
    tracking_code: str | None = None
    carrier_code: str | None = None
    last_event_code: str | None = None
    events: list[TrackingEventResponse]


class OrderSummaryResponse(BaseModel):
    order_id: str
    customer_id: str
    status: str
    total_amount: str
    currency: str
    payment_reference: str | None = None
    carrier_code: str | None = None
    tracking_code: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderSummaryResponse]
    count: int


class TransitionResponse(BaseModel):
    from_status: str
    to_status: str
    trigger: str
    source: str | None = None
    occurred_at: datetime


class PaymentEventResponse(BaseModel):
    event_id: str
    provider: str
    status: str
    raw_status: str | None = None
    amount: str
    currency: str | None = None
    outcome: str
    occurred_at: datetime
    received_at: datetime


class LineItemResponse(BaseModel):
    product_id: str
    quantity: int
    unit_price: str


class OrderDetailResponse(OrderSummaryResponse):
    label_url: str | None = None
    retry_of: str | None = None
    items: list[LineItemResponse]
    transitions: list[TransitionResponse]
    payment_events: list[PaymentEventResponse]


class LabelResponse(BaseModel):
    order_id: str
    status: str
    carrier_code: str
    tracking_code: str
    label_url: str


class ReconciliationRecordResponse(BaseModel):
    run_id: str
    reference: str
    kind: str
    order_id: str | None = None
    internal_amount: str | None = None
    internal_status: str | None = None
    gateway_amount: str | None = None
    gateway_status: str | None = None
    currency: str | None = None
    internal_count: int = 0
    gateway_count: int = 0
    window_start: date
    window_end: date
    detected_at: datetime


class ReconciliationListResponse(BaseModel):
    records: list[ReconciliationRecordResponse]
    count: int
    discrepancies: int


class ReconciliationRunResponse(ReconciliationListResponse):
    run_id: str


class ReconciliationTimelineResponse(BaseModel):
    reference: str
    open: bool
    first_detected_at: datetime | None = None
    resolved_at: datetime | None = None
    records: list[ReconciliationRecordResponse]


class RejectionResponse(BaseModel):
    rejection_id: str
    order_id: str
    order_status: str
    trigger: str
    source_kind: str
    source: str | None = None
    reason: str | None = None
    recorded_at: datetime


class RejectionListResponse(BaseModel):
    rejections: list[RejectionResponse]
    count: int


class TrackingRefreshResponse(BaseModel):
    checked: int
    recorded: int
    failed: int
    skipped: int
    timed_out: bool


class FakeConfigResponse(BaseModel):
    adapter: str
    should_succeed: bool
    failure_reason: str
