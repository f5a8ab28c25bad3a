"""Export containers: allocating LPNs, picking them and dispatching."""
import pytest

from conftest import set_booking_status


@pytest.fixture
def export_job(api, make_booking, sku, stock):
    """An export container with one line ordering 20 HU of SKU-100."""
    booking, (container,) = make_booking("export")
    allocation = api.post("/container-stock-allocations", {
        "container_detail_id": container["id"],
        "product_lines": [{"sku_id": sku["id"], "expected_qty": 20}],
    })
    return booking, container, allocation


def allocate(api, allocation, *items):
    return api.post(f"/container-stock-allocations/{allocation['id']}/allocate",
                    {"items": list(items)}, expected=200)


def lpn_status(api, record):
    return api.get(f"/put-away-stock/{record['id']}")["allocation_status"]


def test_fifo_allocation_fills_the_line(api, export_job, stock):
    _, container, allocation = export_job
    assert allocation["stage"] == "allocated"
    assert allocation["product_lines"][0]["lpns"] == []

    result = allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 15})
    assert result["errors"] == []

    line = result["allocation"]["product_lines"][0]
    # Whole LPNs are taken, oldest first
    assert [ref["lpn_number"] for ref in line["lpns"]] == ["LPN-TEST-1", "LPN-TEST-2"]
    assert line["allocated_qty"] == 20
    assert line["allocated_weight"] == 50
    assert line["plt_qty"] == 2
    assert line["allocated_cubic_per_hu"] == pytest.approx(0.1)
    assert line["location"] == "A-01, A-02"

    first = api.get(f"/put-away-stock/{stock[0]['id']}")
    assert first["allocation_status"] == "allocated"
    assert first["allocated_to_container_id"] == container["id"]
    assert first["allocated_to_allocation_id"] == allocation["id"]
    assert lpn_status(api, stock[2]) == "available"

    again = allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 5})
    assert again["errors"] == [{"index": 0, "message": "Product line 0 is already fully allocated"}]


def test_allocation_item_errors(api, export_job, stock):
    _, _, allocation = export_job
    result = allocate(
        api, allocation,
        {"product_line_index": 0, "quantity": 5},
        {"product_line_index": 4, "batch_number": "B1", "quantity": 5},
        {"product_line_index": 0, "batch_number": "B2", "quantity": 5},
        {"product_line_index": 0, "batch_number": "B1", "lpn_ids": ["missing"]},
    )
    messages = [error["message"] for error in result["errors"]]
    assert messages == [
        "Batch number is required",
        "Product line index 4 is out of range",
        "Insufficient stock: need 5, available 0",
        "LPNs not found: missing",
    ]
    assert result["allocation"]["product_lines"][0]["lpns"] == []


def test_insufficient_stock_leaves_stock_available(api, make_booking, sku, stock):
    _, (container,) = make_booking("export")
    allocation = api.post("/container-stock-allocations", {
        "container_detail_id": container["id"],
        "product_lines": [{"sku_id": sku["id"], "expected_qty": 50}],
    })
    result = allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1"})
    assert result["errors"][0]["message"] == "Insufficient stock: need 50, available 30"
    assert all(lpn_status(api, record) == "available" for record in stock)


def test_explicit_lpns_cannot_be_shared(api, export_job, make_booking, sku, stock):
    _, _, allocation = export_job
    result = allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "lpn_ids": [stock[2]["id"]]})
    assert result["allocation"]["product_lines"][0]["allocated_qty"] == 10

    _, (other_container,) = make_booking("export")
    other = api.post("/container-stock-allocations", {
        "container_detail_id": other_container["id"],
        "product_lines": [{"sku_id": sku["id"]}],
    })
    clash = allocate(api, other, {"product_line_index": 0, "batch_number": "B1", "lpn_ids": [stock[2]["id"]]})
    assert clash["errors"][0]["message"] == "LPN LPN-TEST-3 is already allocated elsewhere"


def test_allocated_stock_is_locked(api, export_job, stock):
    _, _, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "lpn_ids": [stock[0]["id"]]})

    api.patch(f"/put-away-stock/{stock[0]['id']}", {"hu_qty": 3}, expected=400)
    api.delete(f"/put-away-stock/{stock[0]['id']}", expected=400)
    # Location can still be corrected
    assert api.patch(f"/put-away-stock/{stock[0]['id']}", {"location": "Z-9"})["location"] == "Z-9"


def test_deleting_allocation_releases_lpns(api, export_job, stock):
    _, _, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 20})

    api.delete(f"/container-stock-allocations/{allocation['id']}")
    released = api.get(f"/put-away-stock/{stock[0]['id']}")
    assert released["allocation_status"] == "available"
    assert released["allocated_to_allocation_id"] is None


def test_pickup_and_dispatch(api, export_job, stock):
    booking, container, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 20})

    api.post(f"/container-details/{container['id']}/dispatch",
             {"driver_id": "x", "vehicle_id": "y"}, expected=400)

    result = api.post(f"/container-details/{container['id']}/pickup", {"pickups": [{
        "allocation_id": allocation["id"],
        "product_line_index": 0,
        "lpn_ids": [stock[0]["id"], stock[1]["id"]],
        "buffer_qty": 1,
    }]})
    (pickup,) = result["created"]
    assert pickup["pickup_status"] == "completed"
    assert pickup["picked_up_qty"] == 20
    assert pickup["final_picked_up_qty"] == 21
    assert {ref["lpn_number"] for ref in pickup["picked_up_lpns"]} == {"LPN-TEST-1", "LPN-TEST-2"}

    assert lpn_status(api, stock[0]) == "picked"
    picked = api.get(f"/container-stock-allocations/{allocation['id']}")
    assert picked["stage"] == "picked"
    assert picked["product_lines"][0]["picked_qty"] == 20
    assert api.get(f"/container-details/{container['id']}")["status"] == "picked_up"

    # No more picking once the container has left allocated
    api.post(f"/container-details/{container['id']}/pickup", {"pickups": [{
        "allocation_id": allocation["id"], "product_line_index": 0, "lpn_ids": [stock[0]["id"]],
    }]}, expected=400)

    driver = api.post("/drivers", {"name": "Kim"})
    vehicle = api.post("/vehicles", {"fleet_number": "PM-7"})
    dispatched = api.post(f"/container-details/{container['id']}/dispatch",
                          {"driver_id": driver["id"], "vehicle_id": vehicle["id"]}, expected=200)
    assert dispatched["status"] == "dispatched"

    assert lpn_status(api, stock[0]) == "dispatched"
    assert lpn_status(api, stock[2]) == "available"
    assert api.get(f"/container-stock-allocations/{allocation['id']}")["stage"] == "dispatched"

    assignment = api.get(f"/export-container-bookings/{booking['id']}/driver-allocation")["containers"][container["id"]]
    assert assignment["driver_id"] == driver["id"]
    assert assignment["vehicle_id"] == vehicle["id"]
    assert assignment["dispatched_at"] is not None


def test_pickup_rejects_lpns_of_other_allocations(api, export_job, stock):
    _, container, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "lpn_ids": [stock[0]["id"]]})

    result = api.post(f"/container-details/{container['id']}/pickup", {"pickups": [
        {"allocation_id": allocation["id"], "product_line_index": 0, "lpn_ids": [stock[2]["id"]]},
        {"allocation_id": "elsewhere", "product_line_index": 0, "lpn_ids": [stock[0]["id"]]},
    ]})
    assert result["created"] == []
    assert [error["message"] for error in result["errors"]] == [
        "LPN LPN-TEST-3 is not allocated to this allocation",
        "Allocation does not belong to this container",
    ]


def test_draft_pickup_completed_later(api, export_job, stock):
    _, container, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 20})

    result = api.post(f"/container-details/{container['id']}/pickup", {"pickups": [{
        "allocation_id": allocation["id"],
        "product_line_index": 0,
        "lpn_ids": [stock[0]["id"], stock[1]["id"]],
        "complete": False,
    }]})
    (pickup,) = result["created"]
    assert pickup["pickup_status"] == "draft"
    assert lpn_status(api, stock[0]) == "picked"
    # Drafts do not count towards the line
    assert api.get(f"/container-stock-allocations/{allocation['id']}")["product_lines"][0]["picked_qty"] is None
    assert api.get(f"/container-details/{container['id']}")["status"] == "allocated"

    updated = api.patch(f"/pickup-stock/{pickup['id']}", {"buffer_qty": 2, "pickup_status": "completed"})
    assert updated["final_picked_up_qty"] == 22
    assert api.get(f"/container-details/{container['id']}")["status"] == "picked_up"

    api.patch(f"/pickup-stock/{pickup['id']}", {"notes": "late edit"}, expected=400)
    api.delete(f"/pickup-stock/{pickup['id']}", expected=400)


def test_deleting_draft_pickup_reverts_lpns(api, export_job, stock):
    _, container, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 20})

    result = api.post(f"/container-details/{container['id']}/pickup", {"pickups": [{
        "allocation_id": allocation["id"], "product_line_index": 0,
        "lpn_ids": [stock[0]["id"]], "complete": False,
    }]})
    pickup_id = result["created"][0]["id"]
    assert api.get("/pickup-stock", params={"pickup_status": "draft"})["total"] == 1

    api.delete(f"/pickup-stock/{pickup_id}")
    assert lpn_status(api, stock[0]) == "allocated"
    api.get(f"/pickup-stock/{pickup_id}", expected=404)


def test_cancelling_draft_pickup_reverts_lpns(api, export_job, stock):
    _, container, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "lpn_ids": [stock[0]["id"]]})

    result = api.post(f"/container-details/{container['id']}/pickup", {"pickups": [{
        "allocation_id": allocation["id"], "product_line_index": 0,
        "lpn_ids": [stock[0]["id"]], "complete": False,
    }]})
    cancelled = api.patch(f"/pickup-stock/{result['created'][0]['id']}", {"pickup_status": "cancelled"})
    assert cancelled["pickup_status"] == "cancelled"
    assert lpn_status(api, stock[0]) == "allocated"


@pytest.fixture
def two_line_job(api, make_booking, sku):
    """An export container ordering 10 HU of SKU-100 on each of two lines."""
    booking, (container,) = make_booking("export")
    allocation = api.post("/container-stock-allocations", {
        "container_detail_id": container["id"],
        "product_lines": [{"sku_id": sku["id"], "expected_qty": 10}, {"sku_id": sku["id"], "expected_qty": 10}],
    })
    return booking, container, allocation


def test_repeated_lpn_ids_count_once(api, export_job, stock):
    _, _, allocation = export_job
    result = allocate(api, allocation, {
        "product_line_index": 0, "batch_number": "B1", "lpn_ids": [stock[0]["id"], stock[0]["id"]],
    })
    assert result["errors"] == []
    line = result["allocation"]["product_lines"][0]
    assert line["allocated_qty"] == 10
    assert [ref["lpn_number"] for ref in line["lpns"]] == ["LPN-TEST-1"]


def test_fifo_items_in_one_request_take_different_lpns(api, two_line_job, stock):
    _, _, allocation = two_line_job
    result = allocate(
        api, allocation,
        {"product_line_index": 0, "batch_number": "B1", "quantity": 10},
        {"product_line_index": 1, "batch_number": "B1", "quantity": 10},
    )
    assert result["errors"] == []
    first, second = result["allocation"]["product_lines"]
    assert [ref["lpn_number"] for ref in first["lpns"]] == ["LPN-TEST-1"]
    assert [ref["lpn_number"] for ref in second["lpns"]] == ["LPN-TEST-2"]
    assert first["allocated_qty"] == second["allocated_qty"] == 10
    assert lpn_status(api, stock[1]) == "allocated"
    assert lpn_status(api, stock[2]) == "available"


def test_later_items_see_stock_claimed_earlier_in_the_request(api, make_booking, sku, stock):
    _, (container,) = make_booking("export")
    allocation = api.post("/container-stock-allocations", {
        "container_detail_id": container["id"],
        "product_lines": [
            {"sku_id": sku["id"], "expected_qty": 20},
            {"sku_id": sku["id"], "expected_qty": 20},
            {"sku_id": sku["id"], "expected_qty": 10},
        ],
    })
    result = allocate(
        api, allocation,
        {"product_line_index": 0, "batch_number": "B1", "quantity": 20},
        {"product_line_index": 1, "batch_number": "B1", "quantity": 20},
        {"product_line_index": 2, "batch_number": "B1", "lpn_ids": [stock[0]["id"]]},
    )
    assert result["errors"] == [
        {"index": 1, "message": "Insufficient stock: need 20, available 10"},
        {"index": 2, "message": "LPN LPN-TEST-1 is already allocated elsewhere"},
    ]
    lines = result["allocation"]["product_lines"]
    assert lines[0]["allocated_qty"] == 20
    assert lines[1]["lpns"] == [] and lines[2]["lpns"] == []


def test_deleting_cancelled_booking_releases_its_stock(api, export_job, stock, make_booking, sku):
    booking, container, allocation = export_job
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 20})
    # LPN-TEST-2 picked, LPN-TEST-1 still allocated
    api.post(f"/container-details/{container['id']}/pickup", {"pickups": [{
        "allocation_id": allocation["id"], "product_line_index": 0,
        "lpn_ids": [stock[1]["id"]], "complete": False,
    }]})

    set_booking_status(api, booking, "cancelled")
    api.delete(f"/export-container-bookings/{booking['id']}")

    for record in stock[:2]:
        released = api.get(f"/put-away-stock/{record['id']}")
        assert released["allocation_status"] == "available"
        assert released["allocated_to_allocation_id"] is None

    _, (other_container,) = make_booking("export")
    other = api.post("/container-stock-allocations", {
        "container_detail_id": other_container["id"],
        "product_lines": [{"sku_id": sku["id"], "expected_qty": 30}],
    })
    assert allocate(api, other, {"product_line_index": 0, "batch_number": "B1", "quantity": 30})["errors"] == []


def test_lines_holding_lpns_keep_their_sku(api, two_line_job, stock):
    _, _, allocation = two_line_job
    other_sku = api.post("/skus", {"sku_code": "SKU-200"})
    allocate(api, allocation, {"product_line_index": 0, "batch_number": "B1", "quantity": 10})
    first, second = api.get(f"/container-stock-allocations/{allocation['id']}")["product_lines"]
    path = f"/container-stock-allocations/{allocation['id']}"

    error = api.patch(path, {"product_lines": [dict(first, sku_id=other_sku["id"]), second]}, expected=400)
    assert error["detail"] == "Cannot change the SKU of product line 0 while it holds allocated LPNs"

    # Swapping a holding line with a line of another SKU is refused
    api.patch(path, {"product_lines": [dict(second, sku_id=other_sku["id"]), first]}, expected=400)

    updated = api.patch(path, {"product_lines": [dict(first, expected_qty=12), dict(second, sku_id=other_sku["id"])]})
    lines = updated["product_lines"]
    assert [ref["lpn_number"] for ref in lines[0]["lpns"]] == ["LPN-TEST-1"]
    assert lines[0]["allocated_qty"] == 10
    assert lines[1]["sku_id"] == other_sku["id"]
