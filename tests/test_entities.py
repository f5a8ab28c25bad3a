"""Entity settings CRUD."""
import pytest

from tms.api.endpoints.entities import ENTITIES


def test_every_entity_has_routes(client):
    for path in ENTITIES:
        response = client.get(f"/api/v1/{path}")
        assert response.status_code == 200, path
        assert response.json()["total"] == 0


def test_warehouse_crud(api):
    created = api.post("/warehouses", {"name": "Dandenong", "city": "Dandenong", "state": "VIC"})
    assert created["name"] == "Dandenong"

    fetched = api.get(f"/warehouses/{created['id']}")
    assert fetched["city"] == "Dandenong"

    updated = api.patch(f"/warehouses/{created['id']}", {"contact_name": "Sam"})
    assert updated["contact_name"] == "Sam"
    assert updated["city"] == "Dandenong"

    api.delete(f"/warehouses/{created['id']}")
    api.get(f"/warehouses/{created['id']}", expected=404)


def test_required_fields_are_enforced(api):
    api.post("/warehouses", {"city": "Nowhere"}, expected=422)
    api.post("/container-weights", {"size": 20}, expected=422)


def test_sku_code_is_unique_per_tenant(api):
    first = api.post("/skus", {"sku_code": "TILE-1"})
    api.post("/skus", {"sku_code": "TILE-1"}, expected=409)

    second = api.post("/skus", {"sku_code": "TILE-2"})
    api.patch(f"/skus/{second['id']}", {"sku_code": "TILE-1"}, expected=409)
    # Saving a record with its own code is not a conflict
    api.patch(f"/skus/{first['id']}", {"sku_code": "TILE-1", "description": "Floor tile"})


def test_defaults_are_applied(api):
    vehicle = api.post("/vehicles", {"fleet_number": "T-01"})
    assert vehicle["sideloader"] is False


@pytest.mark.parametrize("q,expected", [("dock", 1), ("DOCK", 1), ("yard", 1), ("nothing", 0)])
def test_list_search(api, q, expected):
    api.post("/warehouses", {"name": "North Dock"})
    api.post("/warehouses", {"name": "Back Yard"})
    assert api.get("/warehouses", params={"q": q})["total"] == expected


def test_list_pagination(api):
    for n in range(5):
        api.post("/drivers", {"name": f"Driver {n}"})

    page = api.get("/drivers", params={"page": 2, "page_size": 2})
    assert page["total"] == 5
    assert page["page"] == 2
    assert [driver["name"] for driver in page["items"]] == ["Driver 2", "Driver 3"]
