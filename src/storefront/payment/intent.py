"""Payment intent creation for an order.

One intent per order: asking again while the order is AWAITING_PAYMENT
returns the stored intent without calling the gateway. A gateway failure
leaves the order in CREATED so the customer can simply try again.

The order lock covers the state check and the write, never the gateway
call itself. The state is checked again before the intent is recorded.
"""

from protean.utils.globals import current_domain

from storefront.errors import IllegalTransition
from storefront.gateway import get_gateway
from storefront.gateway.port import IntentResult
from storefront.locking import order_locks
from storefront.order.lookup import get_order
from storefront.order.order import Order, OrderStatus, Trigger
from storefront.order.transitions import RecordPaymentIntent
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def _stored_intent(order: Order) -> IntentResult | None:
    if order.current_status == OrderStatus.AWAITING_PAYMENT and order.payment_reference:
        return IntentResult(redirect_url=order.payment_redirect_url, external_reference=order.payment_reference)
    return None


def _check_can_create(order: Order) -> None:
    if not order.can_apply(Trigger.INTENT_CREATED):
        raise IllegalTransition(str(order.id), order.status, Trigger.INTENT_CREATED.value)


def create_payment_intent(order_id: str) -> IntentResult:
    with order_locks.hold(str(order_id)):
        order = get_order(order_id)
        stored = _stored_intent(order)
        if stored is not None:
            logger.info("payment_intent_reused", order_id=str(order.id), reference=stored.external_reference)
            return stored
        _check_can_create(order)

    gateway = get_gateway()
    result = gateway.create_intent(
        order_id=str(order.id),
        amount=order.total,
        currency=order.currency,
        idempotency_key=f"intent-{order.id}",
    )

    with order_locks.hold(str(order_id)):
        order = get_order(order_id)
        stored = _stored_intent(order)
        if stored is not None:
            # A concurrent request recorded its intent first
            logger.info("payment_intent_reused", order_id=str(order.id), reference=stored.external_reference)
            return stored
        _check_can_create(order)
        current_domain.process(
            RecordPaymentIntent(
                order_id=str(order.id),
                payment_reference=result.external_reference,
                redirect_url=result.redirect_url,
            ),
            asynchronous=False,
        )

    logger.info(
        "payment_intent_created",
        order_id=str(order_id),
        reference=result.external_reference,
        gateway=gateway.name,
    )
    return result
