"""Translation from domain objects to response schemas."""

from storefront.api.schemas import (
    LineItemResponse,
    OrderDetailResponse,
    OrderSummaryResponse,
    PaymentEventResponse,
    ReconciliationListResponse,
    ReconciliationRecordResponse,
    RejectionResponse,
    TrackingEventResponse,
    TransitionResponse,
)
from storefront.order.order import to_decimal


def order_summary(order) -> OrderSummaryResponse:
    return OrderSummaryResponse(
        order_id=str(order.id),
        customer_id=str(order.customer_id),
        status=order.status,
        total_amount=str(order.total),
        currency=order.currency,
        payment_reference=order.payment_reference,
        carrier_code=order.carrier_code,
        tracking_code=order.tracking_code,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def order_detail(order, payment_events) -> OrderDetailResponse:
    summary = order_summary(order)
    return OrderDetailResponse(
        **summary.model_dump(),
        label_url=order.label_url,
        retry_of=str(order.retry_of) if order.retry_of else None,
        items=[
            LineItemResponse(
                product_id=str(item.product_id),
                quantity=item.quantity,
                unit_price=str(to_decimal(item.unit_price)),
            )
            for item in order.items
        ],
        transitions=[
            TransitionResponse(
                from_status=t.from_status,
                to_status=t.to_status,
                trigger=t.trigger,
                source=t.source,
                occurred_at=t.occurred_at,
            )
            for t in order.history()
        ],
        payment_events=[
            PaymentEventResponse(
                event_id=e.event_id,
                provider=e.provider,
                status=e.status,
                raw_status=e.raw_status,
                amount=str(to_decimal(e.amount)),
                currency=e.currency,
                outcome=e.outcome,
                occurred_at=e.occurred_at,
                received_at=e.received_at,
            )
            for e in payment_events
        ],
    )


def tracking_event(event) -> TrackingEventResponse:
    return TrackingEventResponse(
        event_code=event.event_code,
        raw_code=event.raw_code,
        carrier_code=event.carrier_code,
        location=event.location,
        description=event.description,
        occurred_at=event.occurred_at,
        received_at=event.received_at,
    )


def reconciliation_record(record) -> ReconciliationRecordResponse:
    return ReconciliationRecordResponse(
        run_id=str(record.run_id),
        reference=record.reference,
        kind=record.kind,
        order_id=str(record.order_id) if record.order_id else None,
        internal_amount=record.internal_amount,
        internal_status=record.internal_status,
        gateway_amount=record.gateway_amount,
        gateway_status=record.gateway_status,
        currency=record.currency,
        internal_count=record.internal_count or 0,
        gateway_count=record.gateway_count or 0,
        window_start=record.window_start,
        window_end=record.window_end,
        detected_at=record.detected_at,
    )


def reconciliation_list(records) -> ReconciliationListResponse:
    return ReconciliationListResponse(
        records=[reconciliation_record(r) for r in records],
        count=len(records),
        discrepancies=sum(1 for r in records if r.is_discrepancy),
    )


def rejection(item) -> RejectionResponse:
    return RejectionResponse(
        rejection_id=str(item.id),
        order_id=str(item.order_id),
        order_status=item.order_status,
        trigger=item.trigger,
        source_kind=item.source_kind,
        source=item.source,
        reason=item.reason,
        recorded_at=item.recorded_at,
    )
