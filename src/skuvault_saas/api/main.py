from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from skuvault_saas.clients.skuvault import SkuVaultApiError, SkuVaultClient
from skuvault_saas.core.logging import configure_logging, correlation_id_var
from skuvault_saas.core.settings import get_app_settings
from skuvault_saas.db.run_migrations import main as run_alembic
from skuvault_saas.db.seed import seed_all
from skuvault_saas.db.session import dispose_engine, get_session_factory
from skuvault_saas.schemas.common import ErrorInfo, ErrorResponse, ErrorType, MessageResponse, UpstreamErrorDetails
from skuvault_saas.services.fleet import FleetSyncDriver
from skuvault_saas.services.scheduler import SyncScheduler
from skuvault_saas.services.sync import CustomerNotFoundError

# Routers
from skuvault_saas.api.routes.auth import router as auth_router
from skuvault_saas.api.routes.customers import router as customers_router
from skuvault_saas.api.routes.membership import router as membership_router
from skuvault_saas.api.routes.sync import router as sync_router
from skuvault_saas.api.routes.tenants import router as tenants_router

settings = get_app_settings()

# Configure structured logging once at import
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness and readiness probes."},
    {"name": "Auth", "description": "Session login/logout and current user."},
    {"name": "Sync", "description": "On-demand SkuVault synchronization and sync status."},
    {"name": "Tenants", "description": "Tenant onboarding and SkuVault credential management (admin)."},
    {"name": "Customers", "description": "Customer onboarding and removal (admin)."},
    {"name": "Membership", "description": "Membership tiers and report access."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with a correlation_id for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    request.state.correlation_id = corr
    request.state.customer_id = None

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: ErrorType,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    ts = datetime.now(tz=timezone.utc)
    corr = getattr(request.state, "correlation_id", None)
    customer = getattr(request.state, "customer_id", None) or request.path_params.get("customer_id")
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=corr,
        customer_id=str(customer) if customer is not None else None,
        path=request.url.path,
        method=request.method,
        timestamp=ts,
    )
    headers = {"X-Correlation-ID": corr} if corr else None
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"), headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    response = _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type=ErrorType.HTTP,
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type=ErrorType.VALIDATION,
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(SkuVaultApiError)
async def skuvault_exception_handler(request: Request, exc: SkuVaultApiError):
    """SkuVault could not be reached or answered badly: 502 Bad Gateway."""
    logger.warning("Upstream SkuVault error on %s %s: %s", request.method, request.url.path, exc)
    return _build_error_response(
        request=request,
        status_code=502,
        error_type=ErrorType.UPSTREAM,
        message=f"SkuVault API error: {exc}",
        details=(
            UpstreamErrorDetails(upstream_status=exc.status_code, errors=exc.errors).model_dump()
            if exc.status_code
            else None
        ),
    )


@app.exception_handler(CustomerNotFoundError)
async def customer_not_found_handler(request: Request, exc: CustomerNotFoundError):
    return _build_error_response(
        request=request,
        status_code=404,
        error_type=ErrorType.NOT_FOUND,
        message=str(exc),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type=ErrorType.INTERNAL,
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Run migrations and optional seeding, then create the SkuVault client and,
    when enabled, start the periodic fleet sync.
    """
    if settings.RUN_MIGRATIONS_ON_STARTUP:
        try:
            logger.info("Running Alembic migrations: upgrade head")
            # env.py drives its own event loop
            await asyncio.to_thread(run_alembic, ["upgrade", "head"])
            logger.info("Migrations completed.")
        except Exception as exc:
            logger.exception("Migration step failed: %s", exc)
            # Do not crash the app in case of transient DB issues; rely on retries or later readiness probes.

    if settings.AUTO_SEED:
        try:
            logger.info("Running database seeding...")
            await seed_all()
            logger.info("Seeding completed.")
        except Exception as exc:
            logger.exception("Seeding step failed: %s", exc)

    client = SkuVaultClient.from_settings(settings)
    app.state.skuvault_client = client

    app.state.sync_scheduler = None
    if settings.SYNC_ENABLED:
        async def _run_fleet_sync():
            driver = FleetSyncDriver.from_settings(get_session_factory(), client, get_app_settings())
            return await driver.sync_all_customers()

        scheduler = SyncScheduler.from_settings(_run_fleet_sync, settings)
        scheduler.start()
        app.state.sync_scheduler = scheduler
    else:
        logger.info("Background sync disabled (SYNC_ENABLED=false)")


@app.on_event("shutdown")
async def on_shutdown() -> None:
    """Stop the scheduler and release the HTTP client and database pool."""
    scheduler = getattr(app.state, "sync_scheduler", None)
    if scheduler is not None:
        await scheduler.stop()
    client = getattr(app.state, "skuvault_client", None)
    if client is not None:
        await client.aclose()
    await dispose_engine()


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# Include all routers under /api/v1
api_v1.include_router(auth_router)
api_v1.include_router(sync_router)
api_v1.include_router(tenants_router)
api_v1.include_router(customers_router)
api_v1.include_router(membership_router)

# Attach api_v1 to app
app.include_router(api_v1)
