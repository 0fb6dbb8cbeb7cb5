"""Error taxonomy for the storefront pipeline.

Each error maps to one HTTP status in ``storefront.api.errors``. Reconciliation
discrepancies are data, not errors, and never appear here.
"""


class StorefrontError(Exception):
    """Base class for all storefront errors."""

    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = "", **details) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details


class InvalidInput(StorefrontError):
    """Malformed or missing required fields. Rejected with no side effect."""

    status_code = 400
    code = "invalid_input"


class InvalidOrder(InvalidInput):
    """The order cannot be paid: non-positive total or unsupported currency."""

    status_code = 422
    code = "invalid_order"


class AuthenticityError(StorefrontError):
    """Signature or shared-secret verification failed. The event is never applied."""

    status_code = 401
    code = "authenticity_error"


class NotAuthorized(StorefrontError):
    """The caller lacks the identity or capability the operation requires."""

    status_code = 403
    code = "not_authorized"


class NotAuthenticated(NotAuthorized):
    status_code = 401
    code = "not_authenticated"


class OrderNotFound(StorefrontError):
    status_code = 404
    code = "order_not_found"


class IllegalTransition(StorefrontError):
    """An event is valid but has no transition from the order's current state."""

    status_code = 409
    code = "illegal_transition"

    def __init__(self, order_id: str, current: str, trigger: str) -> None:
        super().__init__(
            f"Cannot apply {trigger} to order {order_id} in {current} state",
            order_id=order_id,
            current=current,
            trigger=trigger,
        )
        self.order_id = order_id
        self.current = current
        self.trigger = trigger


class UpstreamUnavailable(StorefrontError):
    """An external system could not be reached. Safe to retry."""

    status_code = 503
    code = "upstream_unavailable"


class GatewayUnavailable(UpstreamUnavailable):
    code = "gateway_unavailable"


class CarrierUnavailable(UpstreamUnavailable):
    code = "carrier_unavailable"


class RateLimited(StorefrontError):
    """The caller exceeded its rate-limit policy and must back off."""

    status_code = 429
    code = "rate_limited"

    def __init__(self, retry_after: int, limit: int | None = None, reset_time: float | None = None) -> None:
        super().__init__("Too many requests", retry_after=retry_after)
        self.retry_after = retry_after
        self.limit = limit
        self.reset_time = reset_time
