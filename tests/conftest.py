import json
import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture

ADMIN_TOKEN = "admin-test-token"
CRON_TOKEN = "cron-test-token"


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Set the environment before any settings are read."""
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ["ADMIN_API_TOKEN"] = ADMIN_TOKEN
    os.environ["CRON_SECRET_TOKEN"] = CRON_TOKEN
    os.environ["PAYMENT_GATEWAY"] = "fake"
    os.environ["CARRIERS"] = "fake"
    os.environ["RATE_LIMIT_STORE"] = "memory"


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    from protean import current_domain

    from storefront.api.dependencies import reset_authorizer
    from storefront.carrier import reset_carriers
    from storefront.config import reset_settings
    from storefront.gateway import reset_gateway
    from storefront.throttling.ratelimit import reset_rate_limiter

    with storefront_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()

    reset_gateway()
    reset_carriers()
    reset_rate_limiter()
    reset_settings()
    reset_authorizer()


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def gateway():
    from storefront.gateway import set_gateway
    from storefront.gateway.fake_adapter import FakeGateway

    fake = FakeGateway(webhook_secret="test-secret")
    set_gateway(fake)
    return fake


@pytest.fixture()
def carrier():
    """A push-capable fake carrier registered as ``fake``."""
    from storefront.carrier import register_carrier
    from storefront.carrier.fake_adapter import FakeCarrier

    fake = FakeCarrier(code="fake", secret="carrier-secret")
    register_carrier(fake)
    return fake


@pytest.fixture()
def polled_carrier():
    """A fake carrier without push webhooks, registered as ``pollex``."""
    from storefront.carrier import register_carrier
    from storefront.carrier.fake_adapter import FakeCarrier

    fake = FakeCarrier(code="pollex", secret="pollex-secret", supports_push=False)
    register_carrier(fake)
    return fake


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@pytest.fixture()
def place_order():
    """Place an order through the command bus and return its id."""
    from protean import current_domain

    from storefront.order.placement import PlaceOrder

    def _place(customer_id="cust-001", items=None, currency="BRL"):
        items = items or [{"product_id": "prod-1", "quantity": 1, "unit_price": "150.00"}]
        return current_domain.process(
            PlaceOrder(customer_id=customer_id, items=json.dumps(items), currency=currency),
            asynchronous=False,
        )

    return _place


@pytest.fixture()
def order_awaiting_payment(place_order):
    """Place an order and record a payment intent with a chosen reference."""
    from protean import current_domain

    from storefront.order.transitions import RecordPaymentIntent

    def _make(reference, amount="150.00", customer_id="cust-001", currency="BRL"):
        order_id = place_order(
            customer_id=customer_id,
            items=[{"product_id": "prod-1", "quantity": 1, "unit_price": amount}],
            currency=currency,
        )
        current_domain.process(
            RecordPaymentIntent(
                order_id=order_id,
                payment_reference=reference,
                redirect_url=f"https://gateway.example/checkout/{reference}",
            ),
            asynchronous=False,
        )
        return order_id

    return _make


@pytest.fixture()
def advance():
    """Apply a sequence of triggers to an order."""
    from storefront.order.transitions import apply_order_transition

    def _advance(order_id, *triggers):
        for trigger in triggers:
            apply_order_transition(order_id, trigger, source="test")
        return order_id

    return _advance


@pytest.fixture()
def shipped_order(order_awaiting_payment, advance):
    from protean import current_domain

    from storefront.order.order import Trigger
    from storefront.order.transitions import RecordShippingLabel

    def _make(reference, carrier_code="fake", tracking_code=None):
        order_id = order_awaiting_payment(reference)
        advance(order_id, Trigger.PAYMENT_APPROVED, Trigger.FULFILLMENT_STARTED)
        current_domain.process(
            RecordShippingLabel(
                order_id=order_id,
                carrier_code=carrier_code,
                tracking_code=tracking_code or f"TRK-{reference}",
                label_url=f"https://labels.example/{reference}.pdf",
            ),
            asynchronous=False,
        )
        advance(order_id, Trigger.CARRIER_DISPATCHED)
        return order_id

    return _make


@pytest.fixture()
def run_together():
    """Run callables in parallel threads, each in its own domain context, released at once."""
    import threading

    from storefront.domain import storefront

    def _run(*calls):
        barrier = threading.Barrier(len(calls))
        results, errors = [], []

        def worker(call):
            with storefront.domain_context():
                barrier.wait()
                try:
                    results.append(call())
                except Exception as exc:
                    errors.append(exc)

        threads = [threading.Thread(target=worker, args=(call,)) for call in calls]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)
        assert errors == []
        assert len(results) == len(calls)
        return results

    return _run


@pytest.fixture()
def assert_legal_history():
    """Check that an order's transitions walk the transition table from CREATED."""
    from storefront.order.order import OrderStatus, Trigger, next_status

    def _check(order):
        status = OrderStatus.CREATED
        for transition in order.history():
            assert transition.from_status == status.value
            target = next_status(status, Trigger(transition.trigger))
            assert target is not None
            assert transition.to_status == target.value
            status = target
        assert order.current_status == status

    return _check
