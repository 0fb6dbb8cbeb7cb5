"""Scheduled tracking refresh.

Polls carriers without push webhooks for every SHIPPED order that has a
tracking code, feeding each event through the same ingestion path as a
pushed webhook. One failing order or carrier never aborts the batch, and
the run stops starting new polls once its time budget is spent.
"""

import time
from dataclasses import asdict, dataclass

from protean.utils.globals import current_domain

from storefront.carrier import all_carriers
from storefront.errors import StorefrontError
from storefront.order.order import Order, OrderStatus
from storefront.utils.logging import get_logger
from storefront.webhooks.ingestor import IngestOutcome, WebhookIngestor

logger = get_logger(__name__)


@dataclass
class RefreshSummary:
    checked: int = 0
    recorded: int = 0
    failed: int = 0
    skipped: int = 0
    timed_out: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def refresh_tracking(time_budget_seconds: float, clock=time.monotonic) -> RefreshSummary:
    summary = RefreshSummary()
    deadline = clock() + time_budget_seconds
    carriers = all_carriers()
    ingestor = WebhookIngestor()

    shipped = (
        current_domain.repository_for(Order)._dao.query.filter(status=OrderStatus.SHIPPED.value).all().items
    )
    for order in shipped:
        adapter = carriers.get(order.carrier_code or "")
        if not order.tracking_code or adapter is None or adapter.supports_push:
            summary.skipped += 1
            continue
        if clock() >= deadline:
            summary.timed_out = True
            logger.warning("tracking_refresh_timed_out", remaining=len(shipped) - summary.checked - summary.skipped)
            break

        summary.checked += 1
        try:
            events = adapter.poll_tracking(str(order.id), order.tracking_code)
            for event in events:
                result = ingestor.apply_carrier_event(event)
                if result.outcome != IngestOutcome.DUPLICATE:
                    summary.recorded += 1
        except StorefrontError as exc:
            summary.failed += 1
            logger.warning(
                "tracking_refresh_failed",
                order_id=str(order.id),
                carrier=order.carrier_code,
                error=exc.code,
                detail=exc.message,
            )

    logger.info("tracking_refresh_completed", **summary.to_dict())
    return summary
