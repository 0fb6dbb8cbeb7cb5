"""Fixed-window rate limiter.

Each (policy, identity) pair counts against one fixed window held by a
``limits`` storage backend: in-process memory by default, or redis when
``RATE_LIMIT_STORE=redis`` so several workers share the same counters.
The backend owns bucket expiry, so an identity's window is dropped once it
elapses.
"""

import math
import time
from dataclasses import dataclass

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage, storage_from_string
from limits.strategies import FixedWindowRateLimiter

from storefront.config import get_settings
from storefront.errors import RateLimited


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    limit: int
    window_seconds: int

    def as_item(self) -> RateLimitItem:
        return RateLimitItemPerSecond(self.limit, self.window_seconds, namespace="storefront")


STRICT = RateLimitPolicy("strict", limit=10, window_seconds=60)
CHECKOUT = RateLimitPolicy("checkout", limit=5, window_seconds=60)
DEFAULT = RateLimitPolicy("default", limit=100, window_seconds=60)

POLICIES = {policy.name: policy for policy in (STRICT, CHECKOUT, DEFAULT)}


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float  # epoch seconds when the window resets
    limit: int
    checked_at: float

    @property
    def retry_after(self) -> int:
        """Whole seconds until the window resets, never less than 1."""
        return max(1, math.ceil(self.reset_time - self.checked_at))

    def raise_for_limit(self) -> None:
        if not self.allowed:
            raise RateLimited(retry_after=self.retry_after, limit=self.limit, reset_time=self.reset_time)


class RateLimiter:
    def __init__(self, storage: Storage | None = None) -> None:
        self.storage = storage if storage is not None else MemoryStorage()
        self.strategy = FixedWindowRateLimiter(self.storage)

    def check(self, identity: str, policy: RateLimitPolicy) -> RateLimitResult:
        """Count one request for ``identity`` under ``policy``."""
        item = policy.as_item()
        now = time.time()
        allowed = self.strategy.hit(item, policy.name, identity)
        stats = self.strategy.get_window_stats(item, policy.name, identity)
        return RateLimitResult(
            allowed=allowed,
            remaining=stats.remaining if allowed else 0,
            reset_time=stats.reset_time,
            limit=policy.limit,
            checked_at=now,
        )

    def reset(self, identity: str, policy: RateLimitPolicy | None = None) -> None:
        """Forget an identity's windows, for one policy or all of them."""
        for each in [policy] if policy is not None else POLICIES.values():
            self.strategy.clear(each.as_item(), each.name, identity)


_limiter: RateLimiter | None = None


def _storage_from_settings() -> Storage:
    settings = get_settings()
    if settings.rate_limit_store == "redis":
        return storage_from_string(settings.redis_url)
    return MemoryStorage()


def get_rate_limiter() -> RateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = RateLimiter(_storage_from_settings())
    return _limiter


def set_rate_limiter(limiter: RateLimiter) -> None:
    global _limiter
    _limiter = limiter


def reset_rate_limiter() -> None:
    """Drop the limiter and all its windows (useful for tests)."""
    global _limiter
    _limiter = None
