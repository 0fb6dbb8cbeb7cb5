"""FastAPI dependencies: rate limiting, caller identity, guards and threadpool offload."""

import hmac
from dataclasses import dataclass

from fastapi import Depends, Request, Response
from fastapi.concurrency import run_in_threadpool

from storefront.config import get_settings
from storefront.domain import storefront
from storefront.errors import NotAuthenticated, NotAuthorized
from storefront.throttling.identity import client_identity
from storefront.throttling.ratelimit import RateLimitPolicy, RateLimitResult, get_rate_limiter
from storefront.utils.logging import add_context, get_logger

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------
def rate_limit(policy: RateLimitPolicy):
    """Dependency factory counting each request against ``policy``."""

    async def check(request: Request, response: Response) -> RateLimitResult:
        identity = client_identity(request)
        add_context(client=identity)
        result = await run_in_threadpool(get_rate_limiter().check, identity, policy)
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        response.headers["X-RateLimit-Reset"] = str(int(result.reset_time))
        if not result.allowed:
            logger.warning(
                "rate_limited",
                identity=identity,
                policy=policy.name,
                path=request.url.path,
                retry_after=result.retry_after,
            )
        result.raise_for_limit()
        return result

    return check


# ---------------------------------------------------------------------------
# Caller identity
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Caller:
    customer_id: str | None = None
    is_admin: bool = False

    @property
    def authenticated(self) -> bool:
        return self.is_admin or bool(self.customer_id)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    return token.strip()


def _token_matches(presented: str | None, expected: str | None) -> bool:
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


class TokenAuthorizer:
    """Default authorization collaborator.

    Administrators present ``ADMIN_API_TOKEN`` as a bearer token. Customers
    are identified by the ``X-Customer-Id`` header, which an upstream
    session layer is trusted to set.
    """

    def authorize(self, request: Request) -> Caller:
        settings = get_settings()
        if _token_matches(_bearer_token(request), settings.admin_api_token):
            return Caller(is_admin=True)
        return Caller(customer_id=request.headers.get("x-customer-id") or None)


_authorizer = TokenAuthorizer()


def set_authorizer(authorizer) -> None:
    global _authorizer
    _authorizer = authorizer


def reset_authorizer() -> None:
    global _authorizer
    _authorizer = TokenAuthorizer()


async def current_caller(request: Request) -> Caller:
    return _authorizer.authorize(request)


async def require_admin(caller: Caller = Depends(current_caller)) -> Caller:
    if not caller.authenticated:
        raise NotAuthenticated("Authentication required")
    if not caller.is_admin:
        raise NotAuthorized("Administrator capability required")
    return caller


async def require_cron(request: Request) -> None:
    """Scheduled-job guard. Fails closed when no cron token is configured."""
    expected = get_settings().cron_secret_token
    if not expected:
        raise NotAuthorized("Scheduled jobs are disabled")
    if not _token_matches(_bearer_token(request), expected):
        raise NotAuthenticated("Invalid cron token")


# ---------------------------------------------------------------------------
# Blocking work
# ---------------------------------------------------------------------------
async def run_blocking(func, *args, **kwargs):
    """Run ``func`` on the threadpool inside the storefront domain context.

    Upstream calls and per-order or per-event locks block, so routes that
    reach them hand the work to a worker thread and keep the event loop free.
    """

    def call():
        with storefront.domain_context():
            return func(*args, **kwargs)

    return await run_in_threadpool(call)
