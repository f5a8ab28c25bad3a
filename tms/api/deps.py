"""
API Dependencies

Reusable FastAPI dependencies for authentication and authorization.
These are used across all API endpoints to ensure consistent security.
"""
from typing import Optional
from fastapi import Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from tms.config import get_settings
from tms.database import get_db
from tms.models.user import TenantUser
from tms.models.tenant import Tenant
from tms.core.security import decode_access_token
from tms.core.exceptions import AuthenticationError, TenantIsolationError
from tms.core.permissions import has_permission, PermissionDenied
from tms.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()

# HTTP Bearer token scheme
security = HTTPBearer(auto_error=False)


def get_current_tenant(request: Request) -> Tenant:
    """
    Get current tenant from request state.

    This is set by TenantMiddleware and should always be present
    for authenticated routes.
    """
    tenant = getattr(request.state, "tenant", None)
    if not tenant:
        logger.error("No tenant in request state - middleware may have failed")
        raise TenantIsolationError("Tenant context not available")
    return tenant


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
    tenant: Tenant = Depends(get_current_tenant)
) -> TenantUser:
    """
    Get current authenticated user.

    This dependency:
    1. Validates JWT token
    2. Verifies the token was issued for the current tenant
    3. Loads the user from that tenant
    4. Checks user is active
    """
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    user_id = payload.get("sub")
    token_tenant_id = payload.get("tenant_id")

    if not user_id:
        raise AuthenticationError("Invalid token payload")

    # A token issued for one tenant never works on another tenant's host
    if token_tenant_id != tenant.id:
        log_security_event(
            "tenant_isolation_violation",
            {"user_id": user_id, "token_tenant": token_tenant_id, "tenant_id": tenant.id},
            logger
        )
        raise TenantIsolationError("Token tenant mismatch")

    user = db.query(TenantUser).filter(
        TenantUser.id == user_id,
        TenantUser.tenant_id == tenant.id
    ).first()

    if not user:
        logger.warning(f"User not found: {user_id} in tenant {tenant.id}")
        raise AuthenticationError("User not found")

    if not user.is_active:
        raise AuthenticationError("User account is inactive")

    return user


def require_permission(permission: str):
    """
    Dependency factory: authenticated user holding `permission`.

    Usage:
        current_user: TenantUser = Depends(require_permission("containers_edit"))
    """

    async def dependency(
        current_user: TenantUser = Depends(get_current_user)
    ) -> TenantUser:
        if not has_permission(current_user, permission):
            log_security_event(
                "permission_denied",
                {"user_id": current_user.id, "tenant_id": current_user.tenant_id, "permission": permission},
                logger
            )
            raise PermissionDenied(detail=f"Permission denied: {permission}")
        return current_user

    return dependency


class Pagination:
    """page / page_size query parameters shared by list endpoints."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        page_size: int = Query(20, ge=1, le=settings.MAX_PAGE_SIZE),
    ):
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def apply(self, query):
        """Return (total, items) for a SQLAlchemy query."""
        total = query.count()
        items = query.offset(self.offset).limit(self.page_size).all()
        return total, items
