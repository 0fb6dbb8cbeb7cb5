"""Customer-facing routes: orders, payment intents, tracking and contact."""

import json

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from storefront.api.dependencies import Caller, current_caller, rate_limit, run_blocking
from storefront.api.schemas import (
    ContactRequest,
    CreateIntentRequest,
    IntentResponse,
    OrderIdResponse,
    PlaceOrderRequest,
    StatusResponse,
    TrackingResponse,
)
from storefront.api.views import tracking_event
from storefront.errors import NotAuthenticated, OrderNotFound
from storefront.order.lookup import get_order
from storefront.order.placement import PlaceOrder, RetryFailedOrder
from storefront.payment.intent import create_payment_intent
from storefront.throttling.ratelimit import DEFAULT, STRICT
from storefront.tracking.aggregator import current_status, get_history
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse, dependencies=[Depends(rate_limit(DEFAULT))])
async def place_order(body: PlaceOrderRequest) -> OrderIdResponse:
    """Place a new order."""
    command = PlaceOrder(
        customer_id=body.customer_id,
        currency=body.currency.upper(),
        items=json.dumps(
            [
                {"product_id": i.product_id, "quantity": i.quantity, "unit_price": str(i.unit_price)}
                for i in body.items
            ]
        ),
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderIdResponse(order_id=order_id)


@order_router.post(
    "/{order_id}/retry",
    status_code=201,
    response_model=OrderIdResponse,
    dependencies=[Depends(rate_limit(STRICT))],
)
async def retry_order(order_id: str) -> OrderIdResponse:
    """Open a new order from one whose payment failed."""
    new_order_id = current_domain.process(RetryFailedOrder(order_id=order_id), asynchronous=False)
    return OrderIdResponse(order_id=new_order_id)


# ---------------------------------------------------------------------------
# Payment Router
# ---------------------------------------------------------------------------
payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post(
    "/intents",
    status_code=201,
    response_model=IntentResponse,
    dependencies=[Depends(rate_limit(STRICT))],
)
async def create_intent(body: CreateIntentRequest) -> IntentResponse:
    """Create (or return the existing) payment intent for an order."""
    result = await run_blocking(create_payment_intent, body.order_id)
    return IntentResponse(
        order_id=body.order_id,
        redirect_url=result.redirect_url,
        external_reference=result.external_reference,
    )


# ---------------------------------------------------------------------------
# Tracking Router
# ---------------------------------------------------------------------------
tracking_router = APIRouter(prefix="/tracking", tags=["tracking"])


@tracking_router.get("/{order_id}", response_model=TrackingResponse, dependencies=[Depends(rate_limit(DEFAULT))])
async def track_order(order_id: str, caller: Caller = Depends(current_caller)) -> TrackingResponse:
    """Current status, tracking code and ordered history of an order."""
    if not caller.authenticated:
        raise NotAuthenticated("Authentication required")
    order = get_order(order_id)
    if not caller.is_admin and str(order.customer_id) != caller.customer_id:
        # Indistinguishable from a missing order
        raise OrderNotFound(f"Order {order_id} not found", order_id=order_id)

    summary = current_status(order_id)
    return TrackingResponse(
        order_id=str(order.id),
        status=order.status,
        tracking_code=order.tracking_code,
        carrier_code=order.carrier_code,
        last_event_code=summary.event_code,
        events=[tracking_event(e) for e in get_history(order_id)],
    )


# ---------------------------------------------------------------------------
# Contact Router
# ---------------------------------------------------------------------------
contact_router = APIRouter(prefix="/contact", tags=["contact"])


@contact_router.post("", status_code=202, response_model=StatusResponse, dependencies=[Depends(rate_limit(STRICT))])
async def submit_contact(body: ContactRequest) -> StatusResponse:
    """Accept a contact-form submission."""
    logger.info(
        "contact_received",
        name=body.name,
        email_domain=body.email.rsplit("@", 1)[-1],
        subject=body.subject,
        message_length=len(body.message),
    )
    return StatusResponse(status="received")
