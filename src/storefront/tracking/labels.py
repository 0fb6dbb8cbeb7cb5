"""Shipping label generation for orders awaiting fulfillment.

The label only records carrier, tracking code and label URL on the order.
The order stays FULFILLMENT_PENDING until the carrier reports dispatch.
The carrier is called outside the order lock; the state is checked again
before the label is recorded.
"""

from protean.utils.globals import current_domain

from storefront.carrier import default_carrier, get_carrier
from storefront.carrier.port import LabelResult
from storefront.errors import IllegalTransition
from storefront.locking import order_locks
from storefront.order.lookup import get_order
from storefront.order.order import Order, OrderStatus
from storefront.order.transitions import RecordShippingLabel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _check_awaiting_fulfillment(order: Order) -> None:
    if order.current_status != OrderStatus.FULFILLMENT_PENDING:
        raise IllegalTransition(str(order.id), order.status, "label_generation")


def generate_label(order_id: str, carrier_code: str | None = None, service_level: str = "standard") -> LabelResult:
    adapter = get_carrier(carrier_code) if carrier_code else default_carrier()

    with order_locks.hold(str(order_id)):
        _check_awaiting_fulfillment(get_order(order_id))

    result = adapter.create_label(str(order_id), service_level=service_level)

    with order_locks.hold(str(order_id)):
        order = get_order(order_id)
        _check_awaiting_fulfillment(order)
        current_domain.process(
            RecordShippingLabel(
                order_id=str(order.id),
                carrier_code=adapter.code,
                tracking_code=result.tracking_code,
                label_url=result.label_url,
            ),
            asynchronous=False,
        )

    logger.info(
        "shipping_label_generated",
        order_id=str(order_id),
        carrier=adapter.code,
        tracking_code=result.tracking_code,
    )
    return result
