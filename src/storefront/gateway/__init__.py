"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (``PAYMENT_GATEWAY=fake``)
- HttpGateway for a real REST gateway (``PAYMENT_GATEWAY=http``)
"""

from storefront.config import get_settings
from storefront.gateway.fake_adapter import FakeGateway
from storefront.gateway.http_adapter import HttpGateway
from storefront.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def _build_gateway() -> PaymentGateway:
    settings = get_settings()
    if settings.payment_gateway == "fake":
        return FakeGateway(
            webhook_secret=settings.gateway_webhook_secret,
            supported_currencies=settings.supported_currencies,
        )
    if settings.payment_gateway == "http":
        if not settings.gateway_base_url:
            raise ValueError("GATEWAY_BASE_URL is required for the http gateway")
        return HttpGateway(
            base_url=settings.gateway_base_url,
            api_key=settings.gateway_api_key,
            webhook_secret=settings.gateway_webhook_secret,
            timeout=settings.upstream_timeout_seconds,
            supported_currencies=settings.supported_currencies,
        )
    raise ValueError(f"Unknown payment gateway: {settings.payment_gateway}")


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, built from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
