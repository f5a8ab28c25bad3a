"""
Tenant Middleware

Resolves the tenant for every request and stores it on request.state.

Each freight company works on its own subdomain:
- acme.tms.example.com -> tenant with subdomain "acme"

API clients and tests can name the tenant with the X-Tenant-Slug header
instead. X-Tenant-ID is accepted last for older integrations.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Optional
import logging

from tms.database import SessionLocal
from tms.models.tenant import Tenant

logger = logging.getLogger(__name__)

# Hosts like www.example.com are the marketing site, not a tenant
RESERVED_SUBDOMAINS = ("www", "api", "app")


class TenantMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract and validate tenant from request.

    Unknown tenants get 404, inactive tenants 403, and requests with no
    tenant identifier at all 400.
    """

    def __init__(self, app):
        super().__init__(app)
        self.excluded_paths = [
            "/docs",
            "/redoc",
            "/openapi.json",
            "/health",
            "/api/v1/tenants/signup",
        ]

    async def dispatch(self, request: Request, call_next):
        """Process each request and inject tenant context."""

        if request.url.path == "/" or any(
            request.url.path.startswith(path) for path in self.excluded_paths
        ):
            return await call_next(request)

        tenant_identifier = self._extract_tenant_identifier(request)

        if not tenant_identifier:
            logger.warning(f"No tenant identifier in request: {request.url}")
            return JSONResponse(
                status_code=400,
                content={"detail": "Tenant identifier required (subdomain or X-Tenant-Slug header)"}
            )

        db = SessionLocal()
        try:
            tenant = self._load_tenant(db, tenant_identifier)
        finally:
            db.close()

        if not tenant:
            logger.warning(f"Tenant not found: {tenant_identifier}")
            return JSONResponse(
                status_code=404,
                content={"detail": f"Tenant not found: {tenant_identifier}"}
            )

        if not tenant.is_active:
            logger.warning(f"Inactive tenant attempted access: {tenant_identifier}")
            return JSONResponse(
                status_code=403,
                content={"detail": "Tenant account is inactive"}
            )

        request.state.tenant = tenant
        request.state.tenant_id = tenant.id

        logger.debug(f"Request for tenant: {tenant.slug} ({tenant.id})")

        return await call_next(request)

    def _extract_tenant_identifier(self, request: Request) -> Optional[str]:
        """
        Extract tenant identifier from request.

        Priority:
        1. X-Tenant-Slug header (for API clients)
        2. Subdomain extraction from Host header
        3. X-Tenant-ID header
        """
        tenant_slug = request.headers.get("X-Tenant-Slug")
        if tenant_slug:
            return tenant_slug

        host = request.headers.get("Host", "").split(":")[0]
        if host:
            parts = host.split(".")
            if len(parts) >= 3:
                subdomain = parts[0]
                if subdomain not in RESERVED_SUBDOMAINS:
                    return subdomain

        tenant_id = request.headers.get("X-Tenant-ID")
        if tenant_id:
            logger.debug("Using X-Tenant-ID header")
            return tenant_id

        return None

    def _load_tenant(self, db: Session, identifier: str) -> Optional[Tenant]:
        """Load tenant by slug, then subdomain, then id."""
        tenant = db.query(Tenant).filter(Tenant.slug == identifier).first()
        if tenant:
            return tenant

        tenant = db.query(Tenant).filter(Tenant.subdomain == identifier).first()
        if tenant:
            return tenant

        return db.query(Tenant).filter(Tenant.id == identifier).first()
