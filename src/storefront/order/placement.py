"""Order placement and retry of failed payments: commands and handler."""

import json

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import IllegalTransition
from storefront.order.lookup import get_order
from storefront.order.order import Order, OrderStatus
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@storefront.command(part_of="Order")
class PlaceOrder:
    """Place a new order from a basket of line items."""

    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of {product_id, quantity, unit_price}
    currency = String(required=True, max_length=3)


@storefront.command(part_of="Order")
class RetryFailedOrder:
    """Open a fresh order with the line items of an order whose payment failed."""

    order_id = Identifier(required=True)


@storefront.command_handler(part_of=Order)
class OrderPlacementHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        order = Order.create(
            customer_id=command.customer_id,
            items_data=items_data,
            currency=command.currency,
        )
        current_domain.repository_for(Order).add(order)
        logger.info(
            "order_placed",
            order_id=str(order.id),
            customer_id=str(command.customer_id),
            total=str(order.total),
            currency=order.currency,
        )
        return str(order.id)

    @handle(RetryFailedOrder)
    def retry_failed_order(self, command):
        failed = get_order(command.order_id)
        if failed.current_status != OrderStatus.PAYMENT_FAILED:
            raise IllegalTransition(str(failed.id), failed.status, "retry")

        order = Order.create(
            customer_id=str(failed.customer_id),
            items_data=[
                {
                    "product_id": str(item.product_id),
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                }
                for item in failed.items
            ],
            currency=failed.currency,
            retry_of=str(failed.id),
        )
        current_domain.repository_for(Order).add(order)
        logger.info("order_retried", order_id=str(order.id), retry_of=str(failed.id))
        return str(order.id)
