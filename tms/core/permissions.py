"""
Permission System (RBAC)

Each TenantRole carries a map of permission flags named
"<section>_<action>", e.g. containers_edit or freight_view.

A flag grants access only when it is literally True. Missing flags,
None and truthy non-bool values are all denials. System roles (the
Admin role created at signup) hold every permission.
"""
from typing import Dict, List
from fastapi import HTTPException, status
from tms.models.user import TenantUser

SECTIONS = (
    "dashboard",
    "containers",
    "inventory",
    "transportation",
    "map",
    "reports",
    "settings",
    "freight",
)

ACTIONS = ("view", "create", "edit", "delete")

SETTINGS_EXTRAS = (
    "settings_manage_users",
    "settings_manage_roles",
    "settings_entity_settings",
    "settings_user_settings",
    "settings_personalization",
)


def all_permissions() -> List[str]:
    """Every permission name, in display order."""
    names = [f"{section}_{action}" for section in SECTIONS for action in ACTIONS]
    names.extend(SETTINGS_EXTRAS)
    return names


PERMISSIONS = frozenset(all_permissions())


class PermissionDenied(HTTPException):
    """Custom exception for permission denied errors."""

    def __init__(self, detail: str = "Permission denied"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


def has_permission(user: TenantUser, permission: str) -> bool:
    """Check a single permission flag on the user's role."""
    role = user.role
    if role is None or not role.is_active:
        return False
    if role.is_system_role:
        return True
    permissions = role.permissions or {}
    return permissions.get(permission) is True


def unknown_permissions(permissions: Dict[str, bool]) -> List[str]:
    """Names in a role's permission map that are not real permissions."""
    return sorted(name for name in permissions if name not in PERMISSIONS)


def default_admin_permissions() -> Dict[str, bool]:
    """Flag map stored on the Admin role created at signup."""
    return {name: True for name in all_permissions()}
