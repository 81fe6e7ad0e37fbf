"""Billing Bridge — FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from billing_bridge.api.v1.billing import router as billing_router
from billing_bridge.api.v1.entitlements import router as entitlements_router
from billing_bridge.api.v1.webhooks import router as webhooks_router
from billing_bridge.auth.supabase import SupabaseAuthClient
from billing_bridge.billing.stripe_client import build_stripe_client
from billing_bridge.config import settings
from billing_bridge.errors import AuthenticationFailure, BillingBridgeError
from billing_bridge.services.subscription_store import detect_owner_column

# Configure root logger so all billing_bridge.* loggers output to stderr.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build long-lived clients and probe the subscriptions schema once."""
    from billing_bridge.database import engine

    # Startup
    app.state.http_client = httpx.AsyncClient(timeout=10.0)
    if settings.supabase_url and settings.supabase_anon_key:
        app.state.auth_client = SupabaseAuthClient(
            settings.supabase_url, settings.supabase_anon_key, app.state.http_client
        )
    if settings.stripe_secret_key:
        app.state.stripe_client = build_stripe_client()

    async with engine.connect() as conn:
        app.state.owner_column = await detect_owner_column(conn)
    logger.info("Subscriptions owner column: %s", app.state.owner_column)

    yield

    # Shutdown: close HTTP pool and dispose engine connections
    await app.state.http_client.aclose()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Stripe billing and entitlement bridge for the web app and browser extension.",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Credentialed CORS: origins are echoed back, never "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.cors_origin_regex or None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["authorization", "content-type"],
)


@app.exception_handler(BillingBridgeError)
async def billing_bridge_error_handler(request: Request, exc: BillingBridgeError) -> JSONResponse:
    """Render taxonomy errors as ``{"error", "details"}`` JSON."""
    headers = None
    if isinstance(exc, AuthenticationFailure):
        headers = {"WWW-Authenticate": "Bearer"}
    if exc.status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed request bodies are a 400, like any other invalid payload."""
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid payload", "details": jsonable_errors(exc)},
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with a generic error response."""
    logger.exception("Unhandled exception on %s", request.url.path)
    return JSONResponse(status_code=500, content={"error": "Server error"})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]


# Routers
app.include_router(entitlements_router)
app.include_router(billing_router)
app.include_router(webhooks_router)


@app.get("/health", tags=["health"])
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": settings.app_name}
