"""Tenant resolution, signup, login and cross-tenant isolation."""
from fastapi.testclient import TestClient

from tms.core.permissions import default_admin_permissions
from tms.core.security import decode_access_token, user_token_claims
from tms.main import app
from tms.models import Tenant, TenantRole, TenantStatus, TenantUser

from conftest import PASSWORD


def test_health_needs_no_tenant(db):
    response = TestClient(app).get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_missing_tenant_identifier_is_400(db):
    response = TestClient(app).get("/api/v1/auth/me")
    assert response.status_code == 400


def test_unknown_tenant_is_404(db):
    response = TestClient(app).get("/api/v1/auth/me", headers={"X-Tenant-Slug": "nobody"})
    assert response.status_code == 404


def test_inactive_tenant_is_403(make_tenant):
    make_tenant("dormant", is_active=False)
    response = TestClient(app).get("/api/v1/auth/me", headers={"X-Tenant-Slug": "dormant"})
    assert response.status_code == 403


def test_tenant_resolved_from_subdomain_and_id(tenant, admin_user, make_client):
    client = make_client(tenant, admin_user)
    token_header = {"Authorization": client.headers["Authorization"]}

    by_host = TestClient(app, base_url="http://acme.example.com")
    assert by_host.get("/api/v1/auth/me", headers=token_header).status_code == 200

    by_id = TestClient(app)
    response = by_id.get("/api/v1/auth/me", headers={**token_header, "X-Tenant-ID": tenant.id})
    assert response.status_code == 200
    assert response.json()["email"] == admin_user.email


def test_signup_creates_pending_tenant_with_admin(db):
    client = TestClient(app)
    response = client.post("/api/v1/tenants/signup", json={
        "company_name": "Blue Gum Logistics",
        "email": "accounts@bluegum.example.com",
        "admin_email": "boss@bluegum.example.com",
        "admin_password": PASSWORD,
        "country_code": "AU",
    })
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["tenant"]["subdomain"] == "blue-gum-logistics"
    assert body["tenant"]["slug"] == "blue-gum-logistics"
    assert body["tenant"]["status"] == TenantStatus.PENDING.value

    role = db.query(TenantRole).filter(TenantRole.id == body["role_id"]).one()
    assert role.name == "Admin"
    assert role.is_system_role
    user = db.query(TenantUser).filter(TenantUser.id == body["user_id"]).one()
    assert user.role_id == role.id

    # Same company name gets a numbered subdomain
    again = client.post("/api/v1/tenants/signup", json={
        "company_name": "Blue Gum Logistics",
        "email": "other@bluegum.example.com",
        "admin_email": "boss@bluegum.example.com",
        "admin_password": PASSWORD,
    })
    assert again.status_code == 201, again.text
    assert again.json()["tenant"]["subdomain"] == "blue-gum-logistics-1"


def test_login_returns_token_for_tenant(tenant, admin_user):
    client = TestClient(app, headers={"X-Tenant-Slug": tenant.slug})
    response = client.post("/api/v1/auth/login", json={
        "email": admin_user.email,
        "password": PASSWORD,
        "tenant_slug": tenant.slug,
    })
    assert response.status_code == 200, response.text
    token = response.json()["access_token"]

    me = client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["id"] == admin_user.id
    assert me.json()["last_login_at"] is not None

    claims = decode_access_token(token)
    assert {key: claims[key] for key in ("sub", "tenant_id", "email")} == user_token_claims(admin_user)
    assert claims["exp"] > claims["iat"]
    assert decode_access_token("not-a-token") is None


def test_login_rejects_wrong_password_and_slug(tenant, admin_user):
    client = TestClient(app, headers={"X-Tenant-Slug": tenant.slug})
    wrong_password = client.post("/api/v1/auth/login", json={
        "email": admin_user.email, "password": "not-the-password", "tenant_slug": tenant.slug,
    })
    assert wrong_password.status_code == 401

    wrong_slug = client.post("/api/v1/auth/login", json={
        "email": admin_user.email, "password": PASSWORD, "tenant_slug": "someone-else",
    })
    assert wrong_slug.status_code == 401
    assert wrong_slug.json()["detail"] == wrong_password.json()["detail"]


def test_token_from_other_tenant_is_rejected(tenant, admin_user, make_tenant, make_client):
    other = make_tenant("globex")
    client = make_client(tenant, admin_user)
    client.headers["X-Tenant-Slug"] = other.slug

    response = client.get("/api/v1/auth/me")
    assert response.status_code == 403
    assert response.json()["type"] == "tenant_isolation_error"


def test_records_of_other_tenants_are_invisible(api, make_tenant, make_role, make_user, make_client):
    mine = api.post("/warehouses", {"name": "Mine"})

    other = make_tenant("globex")
    role = make_role(other, "Admin", default_admin_permissions(), is_system_role=True)
    other_client = make_client(other, make_user(other, role, email="admin@globex.example.com"))

    assert other_client.get(f"/api/v1/warehouses/{mine['id']}").status_code == 404
    assert other_client.get("/api/v1/warehouses").json()["total"] == 0
    assert other_client.patch(f"/api/v1/warehouses/{mine['id']}", json={"name": "x"}).status_code == 404
    assert other_client.delete(f"/api/v1/warehouses/{mine['id']}").status_code == 404

    assert api.get(f"/warehouses/{mine['id']}")["name"] == "Mine"


def test_update_current_tenant(api, db, tenant):
    body = api.patch("/tenants/current", {"phone": "03 9000 0000", "city": "Melbourne"})
    assert body["phone"] == "03 9000 0000"

    db.expire_all()
    assert db.query(Tenant).filter(Tenant.id == tenant.id).one().city == "Melbourne"
