"""Carrier adapter registry: one pluggable adapter per enabled carrier code.

Carriers come from the ``CARRIERS`` setting. A carrier with a base URL gets
an ``HttpCarrier`` speaking its vocabulary; without one it gets a
``FakeCarrier`` so development and tests need no network.
"""

from storefront.carrier.fake_adapter import FakeCarrier
from storefront.carrier.http_adapter import HttpCarrier
from storefront.carrier.port import CarrierAdapter
from storefront.carrier.vocabularies import vocabulary_for
from storefront.config import get_settings
from storefront.errors import InvalidInput

_carriers: dict[str, CarrierAdapter] | None = None


def _build_carriers() -> dict[str, CarrierAdapter]:
    settings = get_settings()
    carriers: dict[str, CarrierAdapter] = {}
    for cfg in settings.carriers:
        if cfg.base_url:
            carriers[cfg.code] = HttpCarrier(
                code=cfg.code,
                base_url=cfg.base_url,
                secret=cfg.secret,
                vocabulary=vocabulary_for(cfg.code),
                api_key=cfg.api_key,
                supports_push=cfg.supports_push,
                timeout=settings.upstream_timeout_seconds,
            )
        else:
            carriers[cfg.code] = FakeCarrier(
                code=cfg.code,
                secret=cfg.secret,
                supports_push=cfg.supports_push,
                vocabulary=vocabulary_for(cfg.code),
            )
    return carriers


def all_carriers() -> dict[str, CarrierAdapter]:
    """Return every configured carrier adapter, built on first use."""
    global _carriers
    if _carriers is None:
        _carriers = _build_carriers()
    return _carriers


def get_carrier(code: str) -> CarrierAdapter:
    """Return the adapter for ``code``; unknown codes are invalid input."""
    try:
        return all_carriers()[code]
    except KeyError as exc:
        raise InvalidInput(f"Unknown carrier: {code}", carrier=code) from exc


def default_carrier() -> CarrierAdapter:
    carriers = all_carriers()
    if not carriers:
        raise InvalidInput("No carrier configured")
    return next(iter(carriers.values()))


def register_carrier(adapter: CarrierAdapter) -> None:
    """Add or replace one carrier adapter (useful for tests)."""
    all_carriers()[adapter.code] = adapter


def reset_carriers() -> None:
    """Reset the carrier registry (useful for testing)."""
    global _carriers
    _carriers = None
