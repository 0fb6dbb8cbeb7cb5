"""Order transitions: commands, handler and the serialized entry point.

``apply_order_transition`` is the only way callers move an order: it holds
the per-order lock across the whole command (the unit of work commits after
the handler returns) and records a ``TransitionRejection`` when the table has
no row for the requested trigger.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.errors import IllegalTransition
from storefront.locking import order_locks
from storefront.order.lookup import get_order
from storefront.order.order import Order, OrderStatus, Trigger
from storefront.order.rejection import RecordTransitionRejection, RejectionSource
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@storefront.command(part_of="Order")
class ApplyTransition:
    order_id = Identifier(required=True)
    trigger = String(required=True, choices=Trigger)
    source = String(max_length=255)


@storefront.command(part_of="Order")
class RecordPaymentIntent:
    order_id = Identifier(required=True)
    payment_reference = String(required=True, max_length=255)
    redirect_url = String(max_length=1000)


@storefront.command(part_of="Order")
class RecordShippingLabel:
    order_id = Identifier(required=True)
    carrier_code = String(required=True, max_length=50)
    tracking_code = String(required=True, max_length=255)
    label_url = String(max_length=1000)


@storefront.command(part_of="Order")
class TouchPaymentActivity:
    order_id = Identifier(required=True)


@storefront.command_handler(part_of=Order)
class OrderTransitionHandler:
    @handle(ApplyTransition)
    def apply_transition(self, command):
        repo = current_domain.repository_for(Order)
        order = get_order(command.order_id)
        target = order.transition(Trigger(command.trigger), source=command.source)
        repo.add(order)
        return target.value

    @handle(RecordPaymentIntent)
    def record_payment_intent(self, command):
        repo = current_domain.repository_for(Order)
        order = get_order(command.order_id)
        order.record_payment_intent(command.payment_reference, command.redirect_url)
        repo.add(order)
        return order.status

    @handle(RecordShippingLabel)
    def record_shipping_label(self, command):
        repo = current_domain.repository_for(Order)
        order = get_order(command.order_id)
        order.record_shipping_label(command.carrier_code, command.tracking_code, command.label_url)
        repo.add(order)
        return order.status

    @handle(TouchPaymentActivity)
    def touch_payment_activity(self, command):
        repo = current_domain.repository_for(Order)
        order = get_order(command.order_id)
        order.touch_payment_activity()
        repo.add(order)
        return order.status


def _record_rejection(order_id: str, exc: IllegalTransition, source: str | None, source_kind: RejectionSource) -> None:
    logger.warning(
        "illegal_transition",
        order_id=order_id,
        current_status=exc.current,
        trigger=exc.trigger,
        source=source,
        source_kind=source_kind.value,
    )
    current_domain.process(
        RecordTransitionRejection(
            order_id=order_id,
            order_status=exc.current,
            trigger=exc.trigger,
            source_kind=source_kind.value,
            source=source,
            reason=exc.message,
        ),
        asynchronous=False,
    )


def apply_order_transition(
    order_id: str,
    trigger: Trigger,
    source: str | None = None,
    source_kind: RejectionSource = RejectionSource.ADMIN,
) -> OrderStatus:
    """Apply ``trigger`` to an order under its lock.

    Illegal transitions are recorded for operator review and re-raised so the
    caller decides whether the request as a whole failed.
    """
    with order_locks.hold(str(order_id)):
        try:
            status = current_domain.process(
                ApplyTransition(order_id=str(order_id), trigger=trigger.value, source=source),
                asynchronous=False,
            )
        except IllegalTransition as exc:
            _record_rejection(str(order_id), exc, source, source_kind)
            raise

    logger.info(
        "order_transitioned",
        order_id=str(order_id),
        trigger=trigger.value,
        status=status,
        source=source,
    )
    return OrderStatus(status)


def reject_transition(
    order_id: str,
    trigger: str,
    source: str | None = None,
    source_kind: RejectionSource = RejectionSource.ADMIN,
) -> None:
    """Record and raise a request that no row of the table can serve, whatever the state."""
    with order_locks.hold(str(order_id)):
        order = get_order(order_id)
        exc = IllegalTransition(str(order.id), order.status, trigger)
        _record_rejection(str(order.id), exc, source, source_kind)
    raise exc


def process_under_order_lock(order_id: str, command):
    """Process an order command while holding that order's lock."""
    with order_locks.hold(str(order_id)):
        return current_domain.process(command, asynchronous=False)
