"""Outbound jobs: allocation, line pickups, dispatch; and the dispatch board."""
import pytest


@pytest.fixture
def outbound_job(api, sku, stock, warehouse):
    """Two lines of SKU-100: 15 HU from batch B1 and 10 HU from any batch."""
    return api.post("/outbound-inventory", {
        "customer_ref_number": "PO-881",
        "warehouse_id": warehouse["id"],
        "product_lines": [
            {"sku_id": sku["id"], "batch_number": "B1", "required_qty": 15},
            {"sku_id": sku["id"], "required_qty": 10},
        ],
    })


def allocate(api, job, *items):
    return api.post(f"/outbound-inventory/{job['id']}/allocate", {"allocations": list(items)}, expected=200)


def lpn_ids(line):
    return [ref["lpn_id"] for ref in line["lpns"]]


def test_create_job_with_lines(api, outbound_job):
    assert outbound_job["job_code"].startswith("OUT-")
    assert outbound_job["status"] == "draft"
    assert [line["allocated_qty"] for line in outbound_job["product_lines"]] == [0, 0]
    assert api.get("/outbound-product-lines", params={"outbound_inventory_id": outbound_job["id"]})["total"] == 2

    api.post("/outbound-inventory", {"product_lines": [{"sku_id": "no-such-sku"}]}, expected=404)


def test_allocation_status_follows_lines(api, outbound_job, stock):
    first, second = outbound_job["product_lines"]

    result = allocate(api, outbound_job, {"product_line_id": first["id"], "quantity": 15})
    assert result["errors"] == []
    assert result["job"]["status"] == "partially_allocated"
    line = result["job"]["product_lines"][0]
    assert line["allocated_qty"] == 20
    assert line["allocated_weight"] == 50
    assert line["location"] == "A-01, A-02"

    available = api.get(f"/outbound-inventory/{outbound_job['id']}/available-stock", params={"sku_id": first["sku_id"]})
    assert [record["lpn_number"] for record in available] == ["LPN-TEST-3"]

    result = allocate(
        api, outbound_job,
        {"product_line_id": second["id"], "quantity": 10},
        {"product_line_id": "not-on-this-job", "quantity": 1},
    )
    assert result["job"]["status"] == "allocated"
    assert result["errors"] == [{"index": 1, "message": "Product line does not belong to this job"}]

    assert api.get("/outbound-inventory", params={"status": "allocated"})["total"] == 1


def test_line_with_allocated_lpns_keeps_its_sku(api, outbound_job):
    first, _ = outbound_job["product_lines"]
    allocate(api, outbound_job, {"product_line_id": first["id"], "quantity": 5})

    api.patch(f"/outbound-product-lines/{first['id']}", {"batch_number": "B9"}, expected=400)
    updated = api.patch(f"/outbound-product-lines/{first['id']}", {"required_weight": 40})
    assert updated["required_weight"] == 40


def test_deleting_line_releases_lpns(api, outbound_job, stock):
    first, _ = outbound_job["product_lines"]
    allocate(api, outbound_job, {"product_line_id": first["id"], "quantity": 15})

    api.delete(f"/outbound-product-lines/{first['id']}")
    assert api.get(f"/put-away-stock/{stock[0]['id']}")["allocation_status"] == "available"


def test_pick_and_dispatch(api, outbound_job, stock):
    job_path = f"/outbound-inventory/{outbound_job['id']}"
    first, second = outbound_job["product_lines"]
    allocated = allocate(
        api, outbound_job,
        {"product_line_id": first["id"], "quantity": 15},
        {"product_line_id": second["id"], "quantity": 10},
    )["job"]
    first, second = allocated["product_lines"]

    # LPN-TEST-3 is allocated to the second line, not the first
    api.post(f"/outbound-product-lines/{first['id']}/pickup", {"lpn_ids": lpn_ids(second)}, expected=400)

    pickup = api.post(f"/outbound-product-lines/{first['id']}/pickup", {"lpn_ids": lpn_ids(first), "buffer_qty": 0.5})
    assert pickup["picked_up_qty"] == 20
    assert pickup["final_picked_up_qty"] == 20.5
    assert api.get(job_path)["status"] == "partially_picked"

    status = api.get(f"{job_path}/pickup-status")
    assert status["picked_product_lines"] == 1
    assert status["all_picked"] is False
    assert status["can_dispatch"] is False

    api.post(f"{job_path}/complete-pickup", expected=400)
    # Picked stock cannot be released
    api.delete(f"/outbound-product-lines/{first['id']}", expected=400)

    api.post(f"/outbound-product-lines/{second['id']}/pickup", {"lpn_ids": lpn_ids(second)})
    assert api.get(job_path)["status"] == "picked"

    vehicle = api.post("/vehicles", {"fleet_number": "PM-7"})
    api.post(f"{job_path}/dispatch", {"vehicle_id": vehicle["id"]}, expected=400)

    ready = api.post(f"{job_path}/complete-pickup", expected=200)
    assert ready["status"] == "ready_to_dispatch"
    status = api.get(f"{job_path}/pickup-status")
    assert status["all_picked"] is True
    assert status["can_dispatch"] is True
    assert status["total_picked_qty"] == 30.5

    api.post(f"{job_path}/allocate", {"allocations": [{"product_line_id": first["id"], "quantity": 1}]}, expected=400)

    driver = api.post("/drivers", {"name": "Kim"})
    dispatch = api.post(f"{job_path}/dispatch", {
        "vehicle_id": vehicle["id"], "driver_id": driver["id"], "dispatch_time": "06:30",
    })
    assert dispatch["status"] == "allocated"
    assert dispatch["outbound_inventory_id"] == outbound_job["id"]
    assert dispatch["dispatch_date"] is not None

    assert api.get(job_path)["status"] == "dispatched"
    assert all(
        api.get(f"/put-away-stock/{record['id']}")["allocation_status"] == "dispatched" for record in stock
    )
    api.patch(job_path, {"order_notes": "too late"}, expected=400)
    assert api.get("/dispatches", params={"status": "allocated"})["total"] == 1


def test_deleting_job_releases_allocated_stock(api, outbound_job, stock):
    first, _ = outbound_job["product_lines"]
    allocate(api, outbound_job, {"product_line_id": first["id"], "quantity": 15})

    api.delete(f"/outbound-inventory/{outbound_job['id']}")
    assert api.get(f"/put-away-stock/{stock[0]['id']}")["allocation_status"] == "available"
    api.get(f"/outbound-product-lines/{first['id']}", expected=404)


def test_dispatch_lifecycle(api):
    driver = api.post("/drivers", {"name": "Kim"})
    vehicle = api.post("/vehicles", {"fleet_number": "PM-7"})

    planned = api.post("/dispatches", {"driver_id": driver["id"], "notes": "Morning run"})
    assert planned["status"] == "planned"
    assert planned["created_by"] is not None

    path = f"/dispatches/{planned['id']}"
    api.post(f"{path}/allocate", {}, expected=400)
    api.post(f"{path}/allocate", {"vehicle_id": "someone-elses-truck"}, expected=404)

    allocated = api.post(f"{path}/allocate", {"vehicle_id": vehicle["id"]}, expected=200)
    assert allocated["status"] == "allocated"
    assert allocated["driver_id"] == driver["id"]
    assert allocated["allocated_at"] is not None
    api.post(f"{path}/allocate", {"vehicle_id": vehicle["id"]}, expected=400)

    assert api.patch(path, {"status": "in_transit"})["status"] == "in_transit"
    api.patch(path, {"status": "lost"}, expected=422)

    api.delete(path)
    api.get(path, expected=404)
