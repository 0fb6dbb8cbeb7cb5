"""Read helpers for orders: by id, by payment reference, by tracking code."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.errors import OrderNotFound
from storefront.order.order import Order, OrderStatus


def get_order(order_id: str) -> Order:
    try:
        return current_domain.repository_for(Order).get(order_id)
    except ObjectNotFoundError as exc:
        raise OrderNotFound(f"Order {order_id} not found", order_id=order_id) from exc


def _first(**filters) -> Order | None:
    items = current_domain.repository_for(Order)._dao.query.filter(**filters).all().items
    return items[0] if items else None


def find_order_for_payment(reference: str) -> Order | None:
    """Resolve a gateway reference: the stored payment reference first, then the order id."""
    if not reference:
        return None
    order = _first(payment_reference=reference)
    if order is None:
        order = _first(id=reference)
    return order


def find_order_for_shipment(order_reference: str | None, tracking_code: str | None) -> Order | None:
    """Resolve a carrier event by order reference, falling back to its tracking code."""
    order = _first(id=order_reference) if order_reference else None
    if order is None and tracking_code:
        order = _first(tracking_code=tracking_code)
    return order


def list_orders(status: str | None = None) -> list[Order]:
    """Orders, optionally filtered by status, newest first."""
    query = current_domain.repository_for(Order)._dao.query
    if status:
        query = query.filter(status=OrderStatus(status).value)
    return sorted(query.all().items, key=lambda o: o.created_at, reverse=True)
