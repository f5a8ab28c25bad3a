"""Role permissions, role management and user management."""
import pytest

from tms.core.permissions import PERMISSIONS, all_permissions, has_permission
from tms.models import TenantRole, TenantUser


@pytest.fixture
def clerk_client(tenant, make_role, make_user, make_client):
    """A user who may view and create freight but nothing else."""
    role = make_role(tenant, "Warehouse Clerk", {"freight_view": True, "freight_create": True})
    user = make_user(tenant, role, email="clerk@acme.example.com")
    return make_client(tenant, user)


def test_permission_names():
    names = all_permissions()
    assert "containers_view" in names
    assert "freight_delete" in names
    assert "settings_entity_settings" in names
    assert len(names) == len(PERMISSIONS)


@pytest.mark.parametrize("flags,expected", [
    ({"freight_view": True}, True),
    ({"freight_view": False}, False),
    ({"freight_view": None}, False),
    ({"freight_view": "yes"}, False),
    ({}, False),
])
def test_has_permission_requires_literal_true(flags, expected):
    user = TenantUser(role=TenantRole(name="r", permissions=flags, is_active=True, is_system_role=False))
    assert has_permission(user, "freight_view") is expected


def test_system_role_grants_everything_unless_inactive():
    role = TenantRole(name="Admin", permissions={}, is_active=True, is_system_role=True)
    user = TenantUser(role=role)
    assert has_permission(user, "transportation_delete")

    role.is_active = False
    assert not has_permission(user, "transportation_delete")


def test_user_without_role_has_no_permissions():
    assert not has_permission(TenantUser(role=None), "freight_view")


def test_endpoint_denies_missing_permission(clerk_client):
    allowed = clerk_client.get("/api/v1/put-away-stock")
    assert allowed.status_code == 200

    denied = clerk_client.delete("/api/v1/put-away-stock/anything")
    assert denied.status_code == 403
    assert denied.json()["detail"] == "Permission denied: freight_delete"

    settings = clerk_client.get("/api/v1/warehouses")
    assert settings.status_code == 403
    assert settings.json()["detail"] == "Permission denied: settings_entity_settings"

    bookings = clerk_client.get("/api/v1/import-container-bookings")
    assert bookings.status_code == 403


def test_unauthenticated_request_is_401(tenant):
    from fastapi.testclient import TestClient
    from tms.main import app

    response = TestClient(app).get("/api/v1/warehouses", headers={"X-Tenant-Slug": tenant.slug})
    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"


def test_custom_role_lifecycle(api, make_user, tenant, db):
    role = api.post("/tenant-roles", {
        "name": "Dispatcher",
        "permissions": {"transportation_view": True, "transportation_edit": True},
    })
    assert role["is_system_role"] is False

    api.post("/tenant-roles", {"name": "Dispatcher"}, expected=409)
    api.post("/tenant-roles", {"name": "Bogus", "permissions": {"launch_rockets": True}}, expected=400)

    updated = api.patch(f"/tenant-roles/{role['id']}", {"permissions": {"transportation_view": True}})
    assert updated["permissions"] == {"transportation_view": True}

    user = make_user(tenant, db.get(TenantRole, role["id"]), email="driver-desk@acme.example.com")
    api.delete(f"/tenant-roles/{role['id']}", expected=400)

    api.patch(f"/tenant-users/{user.id}", {"role_id": None})
    api.delete(f"/tenant-roles/{role['id']}")
    api.get(f"/tenant-roles/{role['id']}", expected=404)


def test_system_role_is_protected(api, admin_role):
    api.delete(f"/tenant-roles/{admin_role.id}", expected=400)
    api.patch(f"/tenant-roles/{admin_role.id}", {"is_active": False}, expected=400)


def test_user_management(api, admin_user, admin_role):
    created = api.post("/tenant-users", {
        "email": "new.starter@acme.example.com",
        "password": "long-enough-password",
        "full_name": "New Starter",
        "role_id": admin_role.id,
    })
    assert created["is_active"] is True

    api.post("/tenant-users", {
        "email": "new.starter@acme.example.com",
        "password": "long-enough-password",
    }, expected=409)
    api.post("/tenant-users", {
        "email": "ghost@acme.example.com",
        "password": "long-enough-password",
        "role_id": "no-such-role",
    }, expected=404)

    listing = api.get("/tenant-users")
    assert listing["total"] == 2
    assert {user["email"] for user in listing["users"]} == {admin_user.email, "new.starter@acme.example.com"}

    api.patch(f"/tenant-users/{admin_user.id}", {"is_active": False}, expected=400)
    api.delete(f"/tenant-users/{admin_user.id}", expected=400)

    api.delete(f"/tenant-users/{created['id']}")
    assert api.get("/tenant-users")["total"] == 1
