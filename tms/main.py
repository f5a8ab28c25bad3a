"""
Main FastAPI Application

Entry point for the multi-tenant transport and warehouse management API.
Configures middleware, routes, error handlers, and startup/shutdown events.
"""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import time
from contextlib import asynccontextmanager

from tms import __version__
from tms.config import get_settings
from tms.database import engine, init_db
from tms.middleware.tenant import TenantMiddleware
from tms.middleware.rate_limit import RateLimitMiddleware
from tms.utils.logging import setup_logging, get_logger, log_security_event
from tms.core.exceptions import (
    AuthenticationError,
    TenantIsolationError,
    RateLimitExceeded,
)
from tms.core.permissions import PermissionDenied

# Import routers
from tms.api.endpoints import (
    allocations,
    auth,
    bookings,
    containers,
    dispatches,
    entities,
    inbound,
    inventory,
    outbound,
    roles,
    stock,
    tenants,
    users,
)

settings = get_settings()

setup_logging(
    log_level=settings.LOG_LEVEL,
    json_format=(settings.ENVIRONMENT == "production")
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    logger.info(f"Starting application in {settings.ENVIRONMENT} mode")

    # Create tables outside production (use migrations there)
    if settings.ENVIRONMENT in ("development", "test"):
        logger.warning(f"Initializing database tables ({settings.ENVIRONMENT} mode)")
        init_db()

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application")
    engine.dispose()
    logger.info("Application shutdown complete")


app = FastAPI(
    title="Transport & Warehouse Management API",
    description="Multi-tenant container bookings, warehouse stock, allocation, pickup and dispatch",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)


# ============================================================================
# MIDDLEWARE CONFIGURATION
# ============================================================================

# SECURITY: In production, restrict allowed_origins to specific domains
allowed_origins = [
    "http://localhost:3000",
    "http://localhost:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins if settings.ENVIRONMENT == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    """Add X-Process-Time header to track request duration."""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)
    return response


# Rate limiting reads request.state.tenant, so it must run inside the
# tenant middleware (middleware added last runs first)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(TenantMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(TenantIsolationError)
async def tenant_isolation_error_handler(request: Request, exc: TenantIsolationError):
    """
    Handle tenant isolation violations.

    CRITICAL: Tenant isolation violations are serious security issues.
    """
    log_security_event(
        "tenant_isolation_violation",
        {
            "detail": exc.detail,
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        },
        logger
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "tenant_isolation_error"}
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "authentication_error"},
        headers=exc.headers or {}
    )


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    log_security_event(
        "permission_denied",
        {
            "detail": exc.detail,
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        },
        logger
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RateLimitExceeded)
async def rate_limit_error_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(
        f"Rate limit exceeded: {request.url.path}",
        extra={"tenant_id": getattr(request.state, "tenant_id", None)}
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "type": "rate_limit_exceeded"},
        headers=exc.headers or {}
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all exception handler.

    SECURITY: Don't expose internal errors in production.
    Log full details but return generic error to client.
    """
    logger.error(
        f"Unhandled exception: {type(exc).__name__}: {str(exc)}",
        exc_info=True,
        extra={
            "path": request.url.path,
            "method": request.method,
            "tenant_id": getattr(request.state, "tenant_id", None)
        }
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={"detail": str(exc), "type": type(exc).__name__}
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "type": "internal_error"}
    )


# ============================================================================
# ROUTES
# ============================================================================

@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": "Transport & Warehouse Management API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


API_PREFIX = "/api/v1"

api_routers = [
    auth.router,
    tenants.router,
    users.router,
    roles.router,
    *entities.routers,
    bookings.import_router,
    bookings.export_router,
    containers.router,
    allocations.router,
    stock.put_away_router,
    stock.pickup_router,
    inbound.router,
    inbound.lines_router,
    outbound.router,
    outbound.lines_router,
    dispatches.router,
    inventory.router,
]

for router in api_routers:
    app.include_router(router, prefix=API_PREFIX)


if __name__ == "__main__":
    import uvicorn

    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug: {settings.DEBUG}")

    uvicorn.run(
        "tms.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
