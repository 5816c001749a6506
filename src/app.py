"""Pharmacy ordering FastAPI application.

Serves the cart and order endpoints synchronously over HTTP. The ordering
domain is built once per application and shared by every request.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from ordering.api.errors import register_error_handlers
from ordering.api.routes import cart_router, order_router
from ordering.api.schemas import HealthResponse
from ordering.config import Settings
from ordering.domain import OrderingDomain
from ordering.utils.logging import add_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, ordering: OrderingDomain | None = None) -> FastAPI:
    settings = settings or (ordering.settings if ordering else Settings.from_env())
    configure_logging(settings.environment)
    ordering = ordering or OrderingDomain(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ordering.setup_db()
        logger.info("Ordering service started", environment=settings.environment)
        yield
        ordering.shutdown()

    app = FastAPI(
        title="Pharmacy Ordering API",
        description="Shopping cart, checkout and order lifecycle",
        lifespan=lifespan,
    )
    app.state.ordering = ordering

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        clear_context()
        add_context(
            method=request.method,
            path=request.url.path,
            user_id=request.headers.get("X-User-Id"),
        )
        try:
            return await call_next(request)
        finally:
            clear_context()

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    register_error_handlers(app)
    app.include_router(cart_router)
    app.include_router(order_router)

    # -----------------------------------------------------------------------
    # Health
    # -----------------------------------------------------------------------
    @app.get("/health", response_model=HealthResponse)
    def health(request: Request) -> HealthResponse:
        domain: OrderingDomain = request.app.state.ordering
        with domain.database.connect() as conn:
            conn.execute(text("SELECT 1"))
        return HealthResponse(database=domain.database.dialect)

    return app


app = create_app()
