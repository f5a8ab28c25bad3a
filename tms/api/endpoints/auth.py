"""
Authentication Endpoints

Handles login for users of the tenant the request is routed to.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from datetime import datetime, timedelta

from tms.database import get_db
from tms.models.user import TenantUser
from tms.models.tenant import Tenant
from tms.schemas.auth import LoginRequest, Token
from tms.schemas.user import UserResponse
from tms.core.security import verify_password, create_access_token, user_token_claims
from tms.core.exceptions import AuthenticationError
from tms.api.deps import get_current_user, get_current_tenant
from tms.config import get_settings
from tms.utils.logging import log_security_event, get_logger

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/auth", tags=["authentication"])


@router.post("/login", response_model=Token)
async def login(
    credentials: LoginRequest,
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token.

    Process:
    1. Check the body's tenant_slug names the routed tenant
    2. Find user in that tenant by email
    3. Verify password
    4. Generate JWT with user_id and tenant_id

    SECURITY: Every failure returns the same message so neither tenants
    nor emails can be enumerated.
    """
    if credentials.tenant_slug != tenant.slug:
        log_security_event(
            "failed_login",
            {"reason": "tenant_mismatch", "tenant_slug": credentials.tenant_slug, "tenant_id": tenant.id},
            logger
        )
        raise AuthenticationError("Invalid credentials")

    user = db.query(TenantUser).filter(
        TenantUser.tenant_id == tenant.id,
        TenantUser.email == credentials.email
    ).first()

    if not user:
        log_security_event(
            "failed_login",
            {"reason": "user_not_found", "email": credentials.email, "tenant_id": tenant.id},
            logger
        )
        raise AuthenticationError("Invalid credentials")

    if not verify_password(credentials.password, user.hashed_password):
        log_security_event(
            "failed_login",
            {"reason": "invalid_password", "user_id": user.id, "tenant_id": tenant.id},
            logger
        )
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        log_security_event(
            "failed_login",
            {"reason": "user_inactive", "user_id": user.id},
            logger
        )
        raise AuthenticationError("User account is inactive")

    access_token = create_access_token(
        user_token_claims(user),
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    user.last_login_at = datetime.utcnow()
    db.commit()

    logger.info(f"Successful login: user={user.id}, tenant={tenant.id}")

    return Token(access_token=access_token, token_type="bearer")


@router.get("/me", response_model=UserResponse)
async def read_current_user(current_user: TenantUser = Depends(get_current_user)):
    return current_user
