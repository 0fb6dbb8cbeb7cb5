"""Shared BDD fixtures and step definitions for the order pipeline."""

from datetime import UTC, datetime

import pytest
from pytest_bdd import given, parsers, then

from storefront.order.lookup import get_order
from storefront.order.order import Trigger
from storefront.order.rejection import list_rejections
from storefront.reconciliation.engine import run_reconciliation


@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


@pytest.fixture()
def context():
    return {}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('an order of {amount} {currency} awaiting payment with reference "{reference}"'),
    target_fixture="order_id",
)
def _order_awaiting_payment(order_awaiting_payment, gateway, amount, currency, reference):
    return order_awaiting_payment(reference, amount=amount, currency=currency)


@given("the order has been paid")
def _order_paid(order_id, advance):
    advance(order_id, Trigger.PAYMENT_APPROVED)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _order_status(order_id, status):
    assert get_order(order_id).status == status


@then(parsers.cfparse("the order history has {count:d} transitions"))
def _history_length(order_id, count):
    assert len(get_order(order_id).history()) == count


@then(parsers.cfparse("{count:d} rejection is recorded for the order"))
def _one_rejection(order_id, count):
    assert len(list_rejections(order_id)) == count


@then(parsers.cfparse("{count:d} rejections are recorded for the order"))
def _rejection_count(order_id, count):
    assert len(list_rejections(order_id)) == count


@then(parsers.cfparse("reconciling today reports {count:d} discrepancies"))
def _reconcile_today(count):
    today = datetime.now(UTC).date()
    assert len(run_reconciliation(today, today).discrepancies) == count
