"""Storefront pipeline FastAPI application.

Serves payment intents, webhook ingestion, tracking lookup, the admin
surface and scheduled-job endpoints. Each request runs inside the Protean
domain context and its own unit of work.

Usage:
    uvicorn storefront.app:create_app --factory --host 0.0.0.0 --port 8000
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api.admin import admin_router
from storefront.api.errors import register_error_handlers
from storefront.api.jobs import jobs_router
from storefront.api.storefront import contact_router, order_router, payment_router, tracking_router
from storefront.api.webhooks import webhook_router
from storefront.domain import storefront
from storefront.utils.logging import add_context, clear_context


def build_app() -> FastAPI:
    """Assemble routes, middleware and error handlers on an initialized domain."""
    app = FastAPI(
        title="Storefront Pipeline API",
        description="Order payment, webhook ingestion and reconciliation",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the Protean domain context and bind request logging context."""
        clear_context()
        add_context(method=request.method, path=request.url.path)
        with storefront.domain_context():
            response = await call_next(request)
        return response

    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(tracking_router)
    app.include_router(contact_router)
    app.include_router(webhook_router)
    app.include_router(admin_router)
    app.include_router(jobs_router)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": storefront.name})

    return app


def create_app() -> FastAPI:
    """Initialize the domain and build the application."""
    storefront.init()
    return build_app()
