"""
Shared fixtures.

The app reads its settings at import time, so the environment is pointed
at a throwaway SQLite database before anything from tms is imported.
"""
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="tms-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_db_dir, 'tms.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

import tms.models  # noqa: F401
from tms.core.permissions import default_admin_permissions
from tms.core.security import create_access_token, get_password_hash, user_token_claims
from tms.database import Base, SessionLocal, engine
from tms.main import app
from tms.models import Tenant, TenantRole, TenantStatus, TenantUser

PASSWORD = "correct-horse-battery"
_password_hash = None


def password_hash():
    # bcrypt is slow; hash once per run
    global _password_hash
    if _password_hash is None:
        _password_hash = get_password_hash(PASSWORD)
    return _password_hash


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def make_tenant(db):
    def factory(slug="acme", **kwargs):
        tenant = Tenant(
            name=kwargs.pop("name", slug.title()),
            slug=slug,
            subdomain=kwargs.pop("subdomain", slug),
            email=kwargs.pop("email", f"ops@{slug}.example.com"),
            status=kwargs.pop("status", TenantStatus.APPROVED),
            **kwargs
        )
        db.add(tenant)
        db.commit()
        return tenant
    return factory


@pytest.fixture
def make_role(db):
    def factory(tenant, name="Admin", permissions=None, is_system_role=False, **kwargs):
        role = TenantRole(
            tenant_id=tenant.id,
            name=name,
            permissions=permissions if permissions is not None else {},
            is_system_role=is_system_role,
            **kwargs
        )
        db.add(role)
        db.commit()
        return role
    return factory


@pytest.fixture
def make_user(db):
    def factory(tenant, role=None, email="admin@example.com", **kwargs):
        user = TenantUser(
            tenant_id=tenant.id,
            email=email,
            hashed_password=password_hash(),
            role_id=role.id if role else None,
            **kwargs
        )
        db.add(user)
        db.commit()
        return user
    return factory


def auth_headers(tenant, user):
    token = create_access_token(user_token_claims(user))
    return {"X-Tenant-Slug": tenant.slug, "Authorization": f"Bearer {token}"}


@pytest.fixture
def make_client(db):
    """TestClient authenticated as a given user of a given tenant."""
    def factory(tenant, user):
        client = TestClient(app)
        client.headers.update(auth_headers(tenant, user))
        return client
    return factory


@pytest.fixture
def tenant(make_tenant):
    return make_tenant("acme")


@pytest.fixture
def admin_role(tenant, make_role):
    return make_role(tenant, "Admin", default_admin_permissions(), is_system_role=True)


@pytest.fixture
def admin_user(tenant, admin_role, make_user):
    return make_user(tenant, admin_role, email="admin@acme.example.com", full_name="Acme Admin")


@pytest.fixture
def client(tenant, admin_user, make_client):
    return make_client(tenant, admin_user)


class Api:
    """Thin wrapper that asserts the expected status and returns JSON."""

    def __init__(self, client):
        self.client = client

    def _check(self, response, expected):
        assert response.status_code == expected, response.text
        return response.json() if response.content else None

    def get(self, path, expected=200, **kwargs):
        return self._check(self.client.get(f"/api/v1{path}", **kwargs), expected)

    def post(self, path, payload=None, expected=201):
        return self._check(self.client.post(f"/api/v1{path}", json=payload or {}), expected)

    def patch(self, path, payload, expected=200):
        return self._check(self.client.patch(f"/api/v1{path}", json=payload), expected)

    def put(self, path, payload, expected=200):
        return self._check(self.client.put(f"/api/v1{path}", json=payload), expected)

    def delete(self, path, expected=204):
        return self._check(self.client.delete(f"/api/v1{path}"), expected)


@pytest.fixture
def api(client):
    return Api(client)


@pytest.fixture
def warehouse(api):
    return api.post("/warehouses", {"name": "Port Melbourne DC"})


@pytest.fixture
def sku(api):
    return api.post("/skus", {
        "sku_code": "SKU-100",
        "description": "Ceramic tiles",
        "hu_per_su": 10,
        "weight_per_hu": 2.5,
        "length_per_hu": 1000,
        "width_per_hu": 500,
        "height_per_hu": 200,
    })


@pytest.fixture
def stock(api, warehouse, sku):
    """Three available LPNs of 10 HU each, batch B1, created oldest first."""
    return [
        api.post("/put-away-stock", {
            "sku_id": sku["id"],
            "warehouse_id": warehouse["id"],
            "lpn_number": f"LPN-TEST-{n}",
            "batch_number": "B1",
            "location": f"A-0{n}",
            "hu_qty": 10,
        })
        for n in range(1, 4)
    ]


@pytest.fixture
def make_booking(api):
    """
    A booking with every field confirmation needs, plus its containers.

    Returns (booking, [container, ...]).
    """
    def factory(direction="import", containers=1, **overrides):
        vessel = api.post("/vessels", {"vessel_name": "Spirit of Tasmania"})
        customer = api.post("/customers", {"customer_name": "Tile Importers"})
        shipping_line = api.post("/shipping-lines", {"name": "Blue Anchor Line"})
        size = api.post("/container-sizes", {"size": 40})
        wharf = api.post("/wharves", {"name": "Swanson Dock"})
        park = api.post("/empty-parks", {"name": "Coode Road"})

        payload = {
            "customer_reference": "CUST-1",
            "booking_reference": "BOOK-1",
            "charge_to_id": customer["id"],
            "charge_to_collection": "customers",
            "vessel_id": vessel["id"],
            "from_id": wharf["id"],
            "to_id": customer["id"],
            "container_size_ids": [size["id"]],
            "container_quantities": {size["id"]: containers},
            "empty_routing": {
                "shipping_line_id": shipping_line["id"],
                "pickup_location_id": park["id"],
                "dropoff_location_id": wharf["id"],
            },
            "full_routing": {
                "pickup_location_id": wharf["id"],
                "dropoff_location_id": customer["id"],
            },
        }
        payload["consignee_id" if direction == "import" else "consignor_id"] = customer["id"]
        payload.update(overrides)

        booking = api.post(f"/{direction}-container-bookings", payload)
        created = [
            api.post("/container-details", {"booking_id": booking["id"], "container_size_id": size["id"]})
            for _ in range(containers)
        ]
        return booking, created
    return factory


def set_booking_status(api, booking, status, expected=200):
    return api.patch(f"/{booking['direction']}-container-bookings/{booking['id']}/status",
                     {"status": status}, expected=expected)
