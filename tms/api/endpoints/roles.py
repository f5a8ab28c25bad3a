"""
Tenant Role Endpoints

Roles are named permission maps. Requires settings_manage_roles.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from tms.database import get_db
from tms.models.user import TenantUser, TenantRole
from tms.models.tenant import Tenant
from tms.schemas.user import RoleCreate, RoleUpdate, RoleResponse, RoleListResponse
from tms.api.deps import get_current_tenant, require_permission
from tms.core.permissions import unknown_permissions
from tms.core.exceptions import ConflictError, InvalidInputError
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/tenant-roles", tags=["tenant roles"])

manage_roles = require_permission("settings_manage_roles")


def _validate(db: Session, tenant: Tenant, name: Optional[str], permissions, exclude_id: Optional[str] = None):
    if permissions:
        unknown = unknown_permissions(permissions)
        if unknown:
            raise InvalidInputError(f"Unknown permissions: {', '.join(unknown)}")

    if name:
        query = db.query(TenantRole).filter(
            TenantRole.tenant_id == tenant.id,
            TenantRole.name == name
        )
        if exclude_id:
            query = query.filter(TenantRole.id != exclude_id)
        if query.first():
            raise ConflictError(f"Role {name!r} already exists")


@router.get("", response_model=RoleListResponse)
async def list_roles(
    current_user: TenantUser = Depends(manage_roles),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    roles = db.query(TenantRole).filter(
        TenantRole.tenant_id == tenant.id
    ).order_by(TenantRole.name).all()
    return RoleListResponse(roles=roles, total=len(roles))


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    current_user: TenantUser = Depends(manage_roles),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return TenantRole.get_for_tenant(db, tenant.id, role_id, "Role")


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_data: RoleCreate,
    current_user: TenantUser = Depends(manage_roles),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Create a custom role.

    Custom roles are never system roles; only the Admin role created at
    signup bypasses the permission map.
    """
    _validate(db, tenant, role_data.name, role_data.permissions)

    role = TenantRole(
        tenant_id=tenant.id,
        name=role_data.name,
        description=role_data.description,
        permissions=role_data.permissions,
        is_system_role=False,
    )
    db.add(role)
    db.commit()
    db.refresh(role)

    logger.info(f"Role created: {role.id} ({role.name}) by {current_user.id}")

    return role


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    role_data: RoleUpdate,
    current_user: TenantUser = Depends(manage_roles),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    role = TenantRole.get_for_tenant(db, tenant.id, role_id, "Role")

    update_data = role_data.model_dump(exclude_unset=True)
    _validate(db, tenant, update_data.get("name"), update_data.get("permissions"), exclude_id=role.id)

    if role.is_system_role and update_data.get("is_active") is False:
        raise InvalidInputError("System roles cannot be deactivated")

    for field, value in update_data.items():
        setattr(role, field, value)

    db.commit()
    db.refresh(role)

    logger.info(f"Role updated: {role.id} by {current_user.id}")

    return role


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    current_user: TenantUser = Depends(manage_roles),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    role = TenantRole.get_for_tenant(db, tenant.id, role_id, "Role")

    if role.is_system_role:
        raise InvalidInputError("System roles cannot be deleted")

    in_use = db.query(TenantUser.id).filter(
        TenantUser.tenant_id == tenant.id,
        TenantUser.role_id == role.id
    ).first()
    if in_use:
        raise InvalidInputError("Role is assigned to users and cannot be deleted")

    db.delete(role)
    db.commit()

    logger.info(f"Role deleted: {role_id} by {current_user.id}")

    return None
