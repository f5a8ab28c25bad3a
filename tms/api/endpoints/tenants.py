"""
Tenant Endpoints

Company signup and the current company's settings.

Signup runs without a tenant context (the tenant doesn't exist yet) and
is excluded from TenantMiddleware.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tms.database import get_db
from tms.models.tenant import Tenant, TenantStatus
from tms.models.user import TenantRole, TenantUser
from tms.schemas.tenant import TenantSignup, TenantUpdate, TenantResponse, SignupResponse
from tms.api.deps import get_current_tenant, get_current_user, require_permission
from tms.core.security import get_password_hash
from tms.core.permissions import default_admin_permissions
from tms.core.exceptions import InvalidInputError
from tms.services.codes import generate_subdomain
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    signup_data: TenantSignup,
    db: Session = Depends(get_db)
):
    """
    Register a new company.

    Creates the tenant (status pending), a system "Admin" role holding
    every permission, and the first user in that role. The subdomain is
    derived from the company name and doubles as the slug.
    """
    try:
        subdomain = generate_subdomain(db, signup_data.company_name)
    except ValueError as e:
        raise InvalidInputError(str(e))

    details = signup_data.model_dump(
        exclude={"company_name", "admin_email", "admin_password", "admin_full_name"}
    )
    tenant = Tenant(
        name=signup_data.company_name,
        slug=subdomain,
        subdomain=subdomain,
        status=TenantStatus.PENDING,
        is_active=True,
        **details
    )
    db.add(tenant)
    db.flush()

    role = TenantRole(
        tenant_id=tenant.id,
        name="Admin",
        description="Full access",
        is_system_role=True,
        permissions=default_admin_permissions(),
    )
    db.add(role)
    db.flush()

    user = TenantUser(
        tenant_id=tenant.id,
        email=signup_data.admin_email,
        hashed_password=get_password_hash(signup_data.admin_password),
        full_name=signup_data.admin_full_name,
        role_id=role.id,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(tenant)

    logger.info(f"Tenant signed up: {tenant.id} ({tenant.subdomain})", extra={"tenant_id": tenant.id})

    return SignupResponse(tenant=tenant, user_id=user.id, role_id=role.id)


@router.get("/current", response_model=TenantResponse)
async def get_current(
    current_user: TenantUser = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant)
):
    return tenant


@router.patch("/current", response_model=TenantResponse)
async def update_current(
    tenant_data: TenantUpdate,
    current_user: TenantUser = Depends(require_permission("settings_manage_users")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    # request.state.tenant is detached from this session
    record = db.query(Tenant).filter(Tenant.id == tenant.id).first()

    for field, value in tenant_data.model_dump(exclude_unset=True).items():
        setattr(record, field, value)

    db.commit()
    db.refresh(record)

    logger.info(f"Tenant updated: {record.id} by {current_user.id}")

    return record
