"""
Tenant User Endpoints

CRUD operations for users within a tenant.
All operations are scoped to the current tenant (enforced by middleware)
and require settings_manage_users.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from tms.database import get_db
from tms.models.user import TenantUser, TenantRole
from tms.models.tenant import Tenant
from tms.schemas.user import UserResponse, UserCreate, UserUpdate, UserListResponse
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.security import get_password_hash
from tms.core.exceptions import ConflictError, InvalidInputError
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenant-users", tags=["tenant users"])

manage_users = require_permission("settings_manage_users")


def _check_role(db: Session, tenant: Tenant, role_id: Optional[str]) -> None:
    if role_id:
        TenantRole.get_for_tenant(db, tenant.id, role_id, "Role")


def _check_email_free(db: Session, tenant: Tenant, email: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(TenantUser).filter(
        TenantUser.tenant_id == tenant.id,
        TenantUser.email == email
    )
    if exclude_id:
        query = query.filter(TenantUser.id != exclude_id)
    if query.first():
        raise ConflictError("User with this email already exists")


@router.get("", response_model=UserListResponse)
async def list_users(
    is_active: Optional[bool] = Query(None),
    role_id: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(manage_users),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    List users in current tenant.

    TENANT_ISOLATION: Automatically filtered by current tenant.
    """
    query = db.query(TenantUser).filter(TenantUser.tenant_id == tenant.id)

    if is_active is not None:
        query = query.filter(TenantUser.is_active == is_active)
    if role_id:
        query = query.filter(TenantUser.role_id == role_id)

    total, users = pagination.apply(query.order_by(TenantUser.email))

    logger.debug(f"Listed {len(users)} users for tenant {tenant.id}")

    return UserListResponse(
        users=users,
        total=total,
        page=pagination.page,
        page_size=pagination.page_size
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: TenantUser = Depends(manage_users),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return TenantUser.get_for_tenant(db, tenant.id, user_id, "User")


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    current_user: TenantUser = Depends(manage_users),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    _check_email_free(db, tenant, user_data.email)
    _check_role(db, tenant, user_data.role_id)

    new_user = TenantUser(
        tenant_id=tenant.id,  # CRITICAL: Set tenant_id
        email=user_data.email,
        hashed_password=get_password_hash(user_data.password),
        full_name=user_data.full_name,
        username=user_data.username,
        phone_mobile=user_data.phone_mobile,
        position=user_data.position,
        role_id=user_data.role_id,
        is_active=True
    )

    db.add(new_user)
    db.commit()
    db.refresh(new_user)

    logger.info(f"User created: {new_user.id} by {current_user.id}")

    return new_user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    user_data: UserUpdate,
    current_user: TenantUser = Depends(manage_users),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Update user information.

    A password in the body is hashed; users cannot deactivate themselves.
    """
    user = TenantUser.get_for_tenant(db, tenant.id, user_id, "User")

    update_data = user_data.model_dump(exclude_unset=True)

    if update_data.get("email") and update_data["email"] != user.email:
        _check_email_free(db, tenant, update_data["email"], exclude_id=user.id)
    if "role_id" in update_data:
        _check_role(db, tenant, update_data["role_id"])
    if update_data.get("is_active") is False and user.id == current_user.id:
        raise InvalidInputError("Cannot deactivate your own account")

    password = update_data.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)

    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    logger.info(f"User updated: {user.id} by {current_user.id}")

    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    current_user: TenantUser = Depends(manage_users),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    user = TenantUser.get_for_tenant(db, tenant.id, user_id, "User")

    if user.id == current_user.id:
        raise InvalidInputError("Cannot delete your own account")

    db.delete(user)
    db.commit()

    logger.info(f"User deleted: {user_id} by {current_user.id}")

    return None
