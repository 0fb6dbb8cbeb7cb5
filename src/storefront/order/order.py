"""Order aggregate (CQRS): the payment and fulfillment lifecycle of one order.

The transition table is the single authority on which lifecycle changes are
legal. Each row maps a (state, trigger) pair to its target state; a pair with
no row is rejected with ``IllegalTransition`` and the order is left untouched.

State Machine:
    CREATED → AWAITING_PAYMENT → PAID → FULFILLMENT_PENDING → SHIPPED → DELIVERED
    AWAITING_PAYMENT → PAYMENT_FAILED
    {PAID, SHIPPED, DELIVERED} → REFUNDED
    {CREATED, AWAITING_PAYMENT} → CANCELLED
"""

import json
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
)

from storefront.domain import storefront
from storefront.errors import IllegalTransition
from storefront.order.events import (
    OrderPlaced,
    OrderTransitioned,
    PaymentIntentRecorded,
    ShippingLabelRecorded,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    CREATED = "Created"
    AWAITING_PAYMENT = "AwaitingPayment"
    PAID = "Paid"
    FULFILLMENT_PENDING = "FulfillmentPending"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    PAYMENT_FAILED = "PaymentFailed"
    REFUNDED = "Refunded"
    CANCELLED = "Cancelled"


class Trigger(Enum):
    INTENT_CREATED = "intent_created"
    PAYMENT_APPROVED = "payment_approved"
    PAYMENT_REJECTED = "payment_rejected"
    FULFILLMENT_STARTED = "fulfillment_started"
    CARRIER_DISPATCHED = "carrier_dispatched"
    CARRIER_DELIVERED = "carrier_delivered"
    REFUND_APPROVED = "refund_approved"
    ADMIN_CANCEL = "admin_cancel"


_TRANSITIONS = {
    (OrderStatus.CREATED, Trigger.INTENT_CREATED): OrderStatus.AWAITING_PAYMENT,
    (OrderStatus.AWAITING_PAYMENT, Trigger.PAYMENT_APPROVED): OrderStatus.PAID,
    (OrderStatus.AWAITING_PAYMENT, Trigger.PAYMENT_REJECTED): OrderStatus.PAYMENT_FAILED,
    (OrderStatus.PAID, Trigger.FULFILLMENT_STARTED): OrderStatus.FULFILLMENT_PENDING,
    (OrderStatus.FULFILLMENT_PENDING, Trigger.CARRIER_DISPATCHED): OrderStatus.SHIPPED,
    (OrderStatus.SHIPPED, Trigger.CARRIER_DELIVERED): OrderStatus.DELIVERED,
    (OrderStatus.PAID, Trigger.REFUND_APPROVED): OrderStatus.REFUNDED,
    (OrderStatus.SHIPPED, Trigger.REFUND_APPROVED): OrderStatus.REFUNDED,
    (OrderStatus.DELIVERED, Trigger.REFUND_APPROVED): OrderStatus.REFUNDED,
    (OrderStatus.CREATED, Trigger.ADMIN_CANCEL): OrderStatus.CANCELLED,
    (OrderStatus.AWAITING_PAYMENT, Trigger.ADMIN_CANCEL): OrderStatus.CANCELLED,
}

TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.DELIVERED,
        OrderStatus.PAYMENT_FAILED,
        OrderStatus.REFUNDED,
        OrderStatus.CANCELLED,
    }
)

# Triggers that stem from gateway activity and move the reconciliation window
_PAYMENT_TRIGGERS = frozenset(
    {
        Trigger.INTENT_CREATED,
        Trigger.PAYMENT_APPROVED,
        Trigger.PAYMENT_REJECTED,
        Trigger.REFUND_APPROVED,
    }
)


def next_status(current: OrderStatus, trigger: Trigger) -> OrderStatus | None:
    """Look up the target state for a trigger, or None when no row exists."""
    return _TRANSITIONS.get((current, trigger))


def to_decimal(value) -> Decimal:
    """Exact decimal form of a stored amount (floats go through their repr)."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class LineItem:
    """A product, its quantity and the unit price captured when ordered."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)


@storefront.entity(part_of="Order")
class OrderTransition:
    """One applied state change. Never edited or removed."""

    sequence = Integer(required=True)
    from_status = String(required=True, max_length=50)
    to_status = String(required=True, max_length=50)
    trigger = String(required=True, max_length=50)
    source = String(max_length=255)
    occurred_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    customer_id = Identifier(required=True)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.CREATED.value,
    )
    items = HasMany(LineItem)
    total_amount = Float(required=True)
    currency = String(required=True, max_length=3)
    payment_reference = String(max_length=255)
    payment_redirect_url = String(max_length=1000)
    payment_activity_at = DateTime()
    carrier_code = String(max_length=50)
    tracking_code = String(max_length=255)
    label_url = String(max_length=1000)
    retry_of = Identifier()
    transitions = HasMany(OrderTransition)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        customer_id: str,
        items_data: list[dict],
        currency: str,
        retry_of: str | None = None,
    ):
        """Place a new order in CREATED state.

        The total is the exact decimal sum of ``quantity * unit_price`` over
        the line items and is fixed from here on.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one line item"]})

        total = sum(
            (to_decimal(item["unit_price"]) * int(item["quantity"]) for item in items_data),
            Decimal("0"),
        )
        now = datetime.now(UTC)
        order = cls(
            customer_id=customer_id,
            status=OrderStatus.CREATED.value,
            total_amount=float(total),
            currency=currency.upper(),
            retry_of=retry_of,
            created_at=now,
            updated_at=now,
        )
        for item_data in items_data:
            order.add_items(
                LineItem(
                    product_id=item_data["product_id"],
                    quantity=int(item_data["quantity"]),
                    unit_price=float(to_decimal(item_data["unit_price"])),
                )
            )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                customer_id=str(customer_id),
                items=json.dumps(
                    [
                        {
                            "product_id": str(i["product_id"]),
                            "quantity": int(i["quantity"]),
                            "unit_price": str(i["unit_price"]),
                        }
                        for i in items_data
                    ]
                ),
                item_count=len(items_data),
                total_amount=order.total_amount,
                currency=order.currency,
                retry_of=retry_of,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def total(self) -> Decimal:
        return to_decimal(self.total_amount)

    @property
    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    def history(self) -> list:
        """Applied transitions in the order they happened."""
        return sorted(self.transitions or [], key=lambda t: t.sequence)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def can_apply(self, trigger: Trigger) -> bool:
        return next_status(self.current_status, trigger) is not None

    def transition(self, trigger: Trigger, source: str | None = None) -> OrderStatus:
        """Apply one row of the transition table.

        Raises ``IllegalTransition`` (leaving the order unchanged) when the
        current state has no row for ``trigger``.
        """
        current = self.current_status
        target = next_status(current, trigger)
        if target is None:
            raise IllegalTransition(str(self.id), current.value, trigger.value)

        now = datetime.now(UTC)
        self.add_transitions(
            OrderTransition(
                sequence=len(self.transitions or []) + 1,
                from_status=current.value,
                to_status=target.value,
                trigger=trigger.value,
                source=source,
                occurred_at=now,
            )
        )
        self.status = target.value
        self.updated_at = now
        if trigger in _PAYMENT_TRIGGERS:
            self.payment_activity_at = now

        self.raise_(
            OrderTransitioned(
                order_id=str(self.id),
                from_status=current.value,
                to_status=target.value,
                trigger=trigger.value,
                source=source,
                transitioned_at=now,
            )
        )
        return target

    # -------------------------------------------------------------------
    # Payment intent
    # -------------------------------------------------------------------
    def record_payment_intent(self, payment_reference: str, redirect_url: str) -> None:
        """Store the gateway intent and move the order to AWAITING_PAYMENT."""
        self.transition(Trigger.INTENT_CREATED, source=payment_reference)
        self.payment_reference = payment_reference
        self.payment_redirect_url = redirect_url
        self.raise_(
            PaymentIntentRecorded(
                order_id=str(self.id),
                payment_reference=payment_reference,
                redirect_url=redirect_url,
                recorded_at=self.updated_at,
            )
        )

    def touch_payment_activity(self) -> None:
        """Mark gateway activity that did not change state (e.g. pending)."""
        self.payment_activity_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Shipping label
    # -------------------------------------------------------------------
    def record_shipping_label(self, carrier_code: str, tracking_code: str, label_url: str) -> None:
        """Attach a carrier label. Only FULFILLMENT_PENDING orders get labels."""
        if self.current_status != OrderStatus.FULFILLMENT_PENDING:
            raise IllegalTransition(str(self.id), self.status, "label_generation")

        now = datetime.now(UTC)
        self.carrier_code = carrier_code
        self.tracking_code = tracking_code
        self.label_url = label_url
        self.updated_at = now
        self.raise_(
            ShippingLabelRecorded(
                order_id=str(self.id),
                carrier_code=carrier_code,
                tracking_code=tracking_code,
                label_url=label_url,
                recorded_at=now,
            )
        )
