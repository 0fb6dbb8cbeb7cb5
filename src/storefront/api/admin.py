"""Admin routes: fulfillment, reconciliation and the rejection log.

Every route requires the administrator capability. Order state changes go
through the same transition table as webhooks, so no route here can force
an illegal transition.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import require_admin, run_blocking
from storefront.api.schemas import (
    ConfigureFakeRequest,
    FakeConfigResponse,
    LabelRequest,
    LabelResponse,
    OrderDetailResponse,
    OrderListResponse,
    ReconciliationListResponse,
    ReconciliationRunRequest,
    ReconciliationRunResponse,
    ReconciliationTimelineResponse,
    RejectionListResponse,
    TransitionRequest,
)
from storefront.api.views import (
    order_detail,
    order_summary,
    reconciliation_list,
    reconciliation_record,
    rejection,
)
from storefront.carrier import get_carrier
from storefront.carrier.fake_adapter import FakeCarrier
from storefront.config import get_settings
from storefront.errors import InvalidInput, NotAuthorized
from storefront.gateway import get_gateway
from storefront.gateway.fake_adapter import FakeGateway
from storefront.order.lookup import get_order, list_orders
from storefront.order.order import OrderStatus, Trigger
from storefront.order.rejection import RejectionSource, list_rejections
from storefront.order.transitions import apply_order_transition, reject_transition
from storefront.payment.payment_event import list_payment_events
from storefront.reconciliation.engine import list_records, run_reconciliation, timeline
from storefront.tracking.labels import generate_label

admin_router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

# Target status → trigger an administrator may fire
_ADMIN_TRIGGERS = {
    OrderStatus.FULFILLMENT_PENDING: Trigger.FULFILLMENT_STARTED,
    OrderStatus.CANCELLED: Trigger.ADMIN_CANCEL,
}


def _parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError as exc:
        raise InvalidInput(f"Unknown order status: {value}", status=value) from exc


# ---------------------------------------------------------------------------
# Fulfillment
# ---------------------------------------------------------------------------
@admin_router.get("/fulfillment", response_model=OrderListResponse)
async def list_fulfillment(status: str | None = None) -> OrderListResponse:
    """List orders, optionally filtered by status."""
    if status:
        _parse_status(status)
    orders = list_orders(status)
    return OrderListResponse(orders=[order_summary(o) for o in orders], count=len(orders))


@admin_router.get("/orders/{order_id}", response_model=OrderDetailResponse)
async def get_order_detail(order_id: str) -> OrderDetailResponse:
    """Order with its transition history and recorded payment events."""
    order = get_order(order_id)
    return order_detail(order, list_payment_events(order_id=str(order.id)))


@admin_router.patch("/fulfillment/{order_id}", response_model=OrderDetailResponse)
async def transition_order(order_id: str, body: TransitionRequest) -> OrderDetailResponse:
    """Move an order to a new status, subject to the transition table."""
    target = _parse_status(body.status)
    trigger = _ADMIN_TRIGGERS.get(target)
    if trigger is None:
        await run_blocking(reject_transition, order_id, f"admin_set_{target.value}", source="admin")

    await run_blocking(apply_order_transition, order_id, trigger, source="admin", source_kind=RejectionSource.ADMIN)
    order = get_order(order_id)
    return order_detail(order, list_payment_events(order_id=str(order.id)))


@admin_router.post("/fulfillment/{order_id}/label", status_code=201, response_model=LabelResponse)
async def create_label(order_id: str, body: LabelRequest | None = None) -> LabelResponse:
    """Request a shipping label. The order stays unshipped until the carrier confirms dispatch."""
    body = body or LabelRequest()
    await run_blocking(generate_label, order_id, carrier_code=body.carrier, service_level=body.service_level)
    order = get_order(order_id)
    return LabelResponse(
        order_id=str(order.id),
        status=order.status,
        carrier_code=order.carrier_code,
        tracking_code=order.tracking_code,
        label_url=order.label_url or "",
    )


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------
@admin_router.get("/reconciliation", response_model=ReconciliationListResponse)
async def list_reconciliation(
    start: date | None = None,
    end: date | None = None,
    latest: bool = False,
) -> ReconciliationListResponse:
    """Reconciliation records for runs overlapping the window."""
    if start is None or end is None:
        raise InvalidInput("Both start and end dates are required")
    if start > end:
        raise InvalidInput("start must not be after end")
    return reconciliation_list(list_records(start, end, latest_only=latest))


@admin_router.post("/reconciliation", status_code=201, response_model=ReconciliationRunResponse)
async def start_reconciliation(body: ReconciliationRunRequest) -> ReconciliationRunResponse:
    """Run reconciliation for a window now."""
    run = await run_blocking(run_reconciliation, body.start, body.end)
    return ReconciliationRunResponse(**reconciliation_list(run.records).model_dump(), run_id=run.run_id)


@admin_router.get("/reconciliation/{reference}", response_model=ReconciliationTimelineResponse)
async def reconciliation_timeline(reference: str) -> ReconciliationTimelineResponse:
    """Every run's verdict for one payment reference."""
    result = timeline(reference)
    return ReconciliationTimelineResponse(
        reference=result.reference,
        open=result.open,
        first_detected_at=result.first_detected_at,
        resolved_at=result.resolved_at,
        records=[reconciliation_record(r) for r in result.records],
    )


# ---------------------------------------------------------------------------
# Rejections
# ---------------------------------------------------------------------------
@admin_router.get("/rejections", response_model=RejectionListResponse)
async def list_transition_rejections(order_id: str | None = Query(default=None)) -> RejectionListResponse:
    """Events that were valid but arrived when the order could not take them."""
    items = list_rejections(order_id)
    return RejectionListResponse(rejections=[rejection(r) for r in items], count=len(items))


# ---------------------------------------------------------------------------
# Fake adapter configuration (non-production only)
# ---------------------------------------------------------------------------
def _assert_not_production() -> None:
    if get_settings().is_production:
        raise NotAuthorized("Adapter configuration not available in production")


@admin_router.post("/gateway/configure", response_model=FakeConfigResponse)
async def configure_gateway(body: ConfigureFakeRequest) -> FakeConfigResponse:
    """Toggle FakeGateway success/failure for manual testing."""
    _assert_not_production()
    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise InvalidInput("Gateway configuration only available for FakeGateway")
    gateway.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return FakeConfigResponse(
        adapter=type(gateway).__name__,
        should_succeed=gateway.should_succeed,
        failure_reason=gateway.failure_reason,
    )


@admin_router.post("/carriers/{carrier_code}/configure", response_model=FakeConfigResponse)
async def configure_carrier(carrier_code: str, body: ConfigureFakeRequest) -> FakeConfigResponse:
    """Toggle FakeCarrier success/failure for manual testing."""
    _assert_not_production()
    carrier = get_carrier(carrier_code)
    if not isinstance(carrier, FakeCarrier):
        raise InvalidInput("Carrier configuration only available for FakeCarrier")
    carrier.configure(should_succeed=body.should_succeed, failure_reason=body.failure_reason)
    return FakeConfigResponse(
        adapter=type(carrier).__name__,
        should_succeed=carrier.should_succeed,
        failure_reason=carrier.failure_reason,
    )
