"""Import containers: receiving, put-away and container housekeeping."""
import pytest

from conftest import set_booking_status


@pytest.fixture
def import_job(api, make_booking, sku):
    """An in-progress import booking with one container expecting 20 HU of SKU-100."""
    booking, (container,) = make_booking("import")
    set_booking_status(api, booking, "confirmed")
    set_booking_status(api, booking, "in_progress")
    allocation = api.post("/container-stock-allocations", {
        "container_detail_id": container["id"],
        "product_lines": [{"sku_id": sku["id"], "batch_number": "B7", "expected_qty_import": 20}],
    })
    return booking, container, allocation


def receive(api, allocation, qty=20):
    line = dict(allocation["product_lines"][0], received_qty=qty)
    return api.patch(f"/container-stock-allocations/{allocation['id']}", {"product_lines": [line]})


def test_new_container_gets_number_and_initial_status(make_booking):
    booking, (container,) = make_booking("import")
    assert container["status"] == "expecting"
    assert container["direction"] == "import"
    assert container["container_number"].startswith("CN-")

    _, (export_container,) = make_booking("export")
    assert export_container["status"] == "allocated"


def test_receiving_needs_received_quantities(api, import_job):
    booking, container, allocation = import_job
    assert allocation["stage"] == "expected"

    error = api.patch(f"/container-details/{container['id']}/status", {"status": "received"}, expected=400)
    assert "received values" in error["detail"]

    receive(api, allocation)
    received = api.patch(f"/container-details/{container['id']}/status", {"status": "received"})
    assert received["status"] == "received"

    assert api.get(f"/container-stock-allocations/{allocation['id']}")["stage"] == "received"
    assert api.get(f"/import-container-bookings/{booking['id']}")["status"] == "received"


def test_container_status_cannot_skip_steps(api, import_job):
    _, container, _ = import_job
    path = f"/container-details/{container['id']}/status"
    error = api.patch(path, {"status": "put_away"}, expected=400)
    assert error["detail"] == "Invalid status transition from expecting to put_away"
    api.patch(path, {"status": "dispatched"}, expected=400)
    api.patch(path, {"status": "floating"}, expected=400)


def test_put_away_requires_received_container(api, import_job, warehouse, sku):
    _, container, _ = import_job
    error = api.post(f"/container-details/{container['id']}/put-away", {
        "warehouse_id": warehouse["id"],
        "records": [{"sku_id": sku["id"], "product_line_index": 0, "hu_qty": 5}],
    }, expected=400)
    assert error["detail"] == "Container must be received before put-away"

    api.post(f"/container-details/{container['id']}/put-away", {"warehouse_id": warehouse["id"]}, expected=400)


def test_put_away_creates_stock_and_advances_status(api, import_job, warehouse, sku):
    booking, container, allocation = import_job
    receive(api, allocation)
    api.patch(f"/container-details/{container['id']}/status", {"status": "received"})

    result = api.post(f"/container-details/{container['id']}/put-away", {
        "warehouse_id": warehouse["id"],
        "records": [
            {"sku_id": sku["id"], "product_line_index": 0, "hu_qty": 12, "location": "B-01"},
            {"sku_id": "some-other-sku", "product_line_index": 0, "hu_qty": 1},
            {"sku_id": sku["id"], "product_line_index": 3, "hu_qty": 1},
        ],
    })

    (record,) = result["created"]
    assert record["allocation_status"] == "available"
    assert record["batch_number"] == "B7"
    assert record["container_detail_id"] == container["id"]
    assert record["lpn_number"].startswith("LPN")
    assert [error["index"] for error in result["errors"]] == [1, 2]

    assert api.get(f"/container-details/{container['id']}")["status"] == "put_away"
    assert api.get(f"/import-container-bookings/{booking['id']}")["status"] == "put_away"
    # 12 of 20 received HU are put away
    assert api.get(f"/container-stock-allocations/{allocation['id']}")["stage"] == "received"

    api.post(f"/container-details/{container['id']}/put-away", {
        "warehouse_id": warehouse["id"],
        "records": [{"sku_id": sku["id"], "product_line_index": 0, "hu_qty": 8, "lpn_number": "LPN-MANUAL"}],
    })
    assert api.get(f"/container-stock-allocations/{allocation['id']}")["stage"] == "put_away"

    stock = api.get("/put-away-stock", params={"container_detail_id": container["id"]})
    assert stock["total"] == 2


def test_put_away_only_for_import(api, make_booking, warehouse, sku):
    _, (container,) = make_booking("export")
    error = api.post(f"/container-details/{container['id']}/put-away", {
        "warehouse_id": warehouse["id"],
        "records": [{"sku_id": sku["id"], "hu_qty": 1}],
    }, expected=400)
    assert "import containers" in error["detail"]


def test_container_delete_rules(api, import_job):
    booking, container, allocation = import_job

    extra = api.post("/container-details", {"booking_id": booking["id"], "container_number": "MSKU1234567"})
    assert extra["container_number"] == "MSKU1234567"
    api.delete(f"/container-details/{extra['id']}")
    api.get(f"/container-details/{extra['id']}", expected=404)

    receive(api, allocation)
    api.patch(f"/container-details/{container['id']}/status", {"status": "received"})
    api.delete(f"/container-details/{container['id']}", expected=400)
    api.delete(f"/container-stock-allocations/{allocation['id']}", expected=400)


def test_container_update_and_filters(api, import_job):
    booking, container, _ = import_job
    updated = api.patch(f"/container-details/{container['id']}", {"seal_number": "S-99", "dock": "3"})
    assert updated["seal_number"] == "S-99"
    api.patch(f"/container-details/{container['id']}", {"container_number": ""}, expected=422)

    assert api.get("/container-details", params={"booking_id": booking["id"]})["total"] == 1
    assert api.get("/container-details", params={"status": "received"})["total"] == 0
    assert api.get("/container-details", params={"direction": "import"})["total"] == 1

    listed = api.get(f"/import-container-bookings/{booking['id']}/container-details")
    assert [c["id"] for c in listed] == [container["id"]]
    assert len(api.get(f"/import-container-bookings/{booking['id']}/stock-allocations")) == 1


def test_put_away_reports_lpn_numbers_in_use(api, import_job, warehouse, sku, stock):
    _, container, allocation = import_job
    receive(api, allocation)
    api.patch(f"/container-details/{container['id']}/status", {"status": "received"})

    result = api.post(f"/container-details/{container['id']}/put-away", {
        "warehouse_id": warehouse["id"],
        "records": [
            {"sku_id": sku["id"], "product_line_index": 0, "hu_qty": 5, "lpn_number": "LPN-TEST-1"},
            {"sku_id": sku["id"], "product_line_index": 0, "hu_qty": 5, "lpn_number": "LPN-NEW"},
            {"sku_id": sku["id"], "product_line_index": 0, "hu_qty": 5, "lpn_number": "LPN-NEW"},
        ],
    })

    assert [record["lpn_number"] for record in result["created"]] == ["LPN-NEW"]
    assert result["errors"] == [
        {"index": 0, "message": "LPN LPN-TEST-1 already exists"},
        {"index": 2, "message": "LPN LPN-NEW already exists"},
    ]
    assert api.get(f"/put-away-stock/{stock[0]['id']}")["container_detail_id"] is None
