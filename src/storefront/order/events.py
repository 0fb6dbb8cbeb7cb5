"""Order domain events: facts about an order's lifecycle.

Every state change raises exactly one ``OrderTransitioned``; intent and label
bookkeeping raise their own events without changing state.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A customer placed an order."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of line items
    item_count = Integer(required=True)
    total_amount = Float(required=True)
    currency = String(required=True, max_length=3)
    retry_of = Identifier()
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderTransitioned:
    """An order moved between two states of the lifecycle."""

    __version__ = 1

    order_id = Identifier(required=True)
    from_status = String(required=True, max_length=50)
    to_status = String(required=True, max_length=50)
    trigger = String(required=True, max_length=50)
    source = String(max_length=255)
    transitioned_at = DateTime(required=True)


@storefront.event(part_of="Order")
class PaymentIntentRecorded:
    """The gateway accepted a payment intent for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_reference = String(required=True, max_length=255)
    redirect_url = String(max_length=1000)
    recorded_at = DateTime(required=True)


@storefront.event(part_of="Order")
class ShippingLabelRecorded:
    """A carrier issued a shipping label. The order is not shipped yet."""

    __version__ = 1

    order_id = Identifier(required=True)
    carrier_code = String(required=True, max_length=50)
    tracking_code = String(required=True, max_length=255)
    label_url = String(max_length=1000)
    recorded_at = DateTime(required=True)
