"""Maps the storefront error taxonomy onto HTTP responses.

Bodies carry an error code, a message and safe details only; raw payloads
and secrets are never echoed.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.errors import InvalidInput, RateLimited, StorefrontError
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def error_body(exc: StorefrontError) -> dict:
    return {"error": exc.code, "message": exc.message, "details": exc.details}


def error_headers(exc: StorefrontError) -> dict:
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
        if exc.limit is not None:
            headers["X-RateLimit-Limit"] = str(exc.limit)
            headers["X-RateLimit-Remaining"] = "0"
        if exc.reset_time is not None:
            headers["X-RateLimit-Reset"] = str(int(exc.reset_time))
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return headers


async def handle_storefront_error(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("request_failed", path=request.url.path, error=exc.code, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=error_body(exc), headers=error_headers(exc))


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted({".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()})
    return await handle_storefront_error(request, InvalidInput("Invalid request", fields=fields))


def register_error_handlers(app: FastAPI) -> None:
    """Install Protean's handlers plus the storefront taxonomy."""
    register_exception_handlers(app)
    app.add_exception_handler(StorefrontError, handle_storefront_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
