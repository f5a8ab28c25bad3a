"""Inbound jobs: lines, receiving and put-away."""
import pytest


@pytest.fixture
def inbound_job(api, sku, warehouse):
    return api.post("/inbound-inventory", {
        "warehouse_id": warehouse["id"],
        "transport_mode": "our",
        "product_lines": [
            {"sku_id": sku["id"], "batch_number": "B20", "expected_qty": 24},
            {"sku_id": sku["id"], "batch_number": "B21", "expected_qty": 6},
        ],
    })


def test_create_job_with_lines(api, inbound_job):
    assert inbound_job["job_code"].startswith("INB-")
    assert inbound_job["completed_date"] is None
    assert len(inbound_job["product_lines"]) == 2

    api.post("/inbound-inventory", {"transport_mode": "carrier pigeon"}, expected=422)
    api.post("/inbound-inventory", {"warehouse_id": "no-such-warehouse"}, expected=404)
    assert api.get("/inbound-inventory", params={"job_code": inbound_job["job_code"][4:]})["total"] == 1


def test_line_crud(api, inbound_job, sku):
    line = api.post("/inbound-product-lines", {
        "inbound_inventory_id": inbound_job["id"], "sku_id": sku["id"], "expected_qty": 2,
    })
    assert api.patch(f"/inbound-product-lines/{line['id']}", {"expected_qty": 3})["expected_qty"] == 3
    assert api.get("/inbound-product-lines", params={"inbound_inventory_id": inbound_job["id"]})["total"] == 3

    api.delete(f"/inbound-product-lines/{line['id']}")
    assert len(api.get(f"/inbound-inventory/{inbound_job['id']}")["product_lines"]) == 2


def test_receive_sets_quantities_and_completion(api, inbound_job):
    first, _ = inbound_job["product_lines"]
    received = api.post(f"/inbound-inventory/{inbound_job['id']}/receive", {
        "product_lines": [{"id": first["id"], "received_qty": 23, "received_weight": 57.5}],
    }, expected=200)

    assert received["completed_date"] is not None
    line = received["product_lines"][0]
    assert line["received_qty"] == 23
    assert line["received_weight"] == 57.5
    assert line["expected_qty"] == 24


def test_receive_rejects_lines_of_other_jobs(api, inbound_job, sku):
    other = api.post("/inbound-inventory", {"product_lines": [{"sku_id": sku["id"]}]})
    foreign_line = other["product_lines"][0]

    error = api.post(f"/inbound-inventory/{inbound_job['id']}/receive", {
        "product_lines": [{"id": foreign_line["id"], "received_qty": 1}],
    }, expected=400)
    assert "does not belong to this job" in error["detail"]

    api.post(f"/inbound-inventory/{inbound_job['id']}/put-away", {
        "warehouse_id": inbound_job["warehouse_id"],
        "put_away_records": [{"inbound_product_line_id": foreign_line["id"], "hu_qty": 1}],
    }, expected=400)


def test_put_away_creates_available_stock(api, inbound_job, sku):
    first, second = inbound_job["product_lines"]
    result = api.post(f"/inbound-inventory/{inbound_job['id']}/put-away", {
        "completed_date": "2026-03-02T09:00:00",
        "product_lines": [{"id": first["id"], "received_qty": 24}],
        "warehouse_id": inbound_job["warehouse_id"],
        "put_away_records": [
            {"inbound_product_line_id": first["id"], "hu_qty": 12, "location": "C-01"},
            {"inbound_product_line_id": first["id"], "hu_qty": 12, "location": "C-02"},
            {"inbound_product_line_id": second["id"], "hu_qty": 6, "lpn_number": "LPN-B21"},
        ],
    }, expected=200)

    assert result["job"]["completed_date"].startswith("2026-03-02")
    records = result["put_away_records"]
    assert len(records) == 3
    assert {record["batch_number"] for record in records} == {"B20", "B21"}
    assert all(record["allocation_status"] == "available" for record in records)
    assert all(record["sku_id"] == sku["id"] for record in records)
    assert records[2]["lpn_number"] == "LPN-B21"

    listed = api.get("/put-away-stock", params={"inbound_inventory_id": inbound_job["id"]})
    assert listed["total"] == 3


def test_put_away_without_records_only_receives(api, inbound_job):
    result = api.post(f"/inbound-inventory/{inbound_job['id']}/put-away", {}, expected=200)
    assert result["put_away_records"] == []
    assert result["job"]["completed_date"] is not None


def test_put_away_record_needs_a_line(api, inbound_job):
    error = api.post(f"/inbound-inventory/{inbound_job['id']}/put-away", {
        "warehouse_id": inbound_job["warehouse_id"],
        "put_away_records": [{"hu_qty": 1}],
    }, expected=400)
    assert error["detail"] == "Each put-away record needs inbound_product_line_id"


def test_delete_job_removes_lines(api, inbound_job):
    line_id = inbound_job["product_lines"][0]["id"]
    api.delete(f"/inbound-inventory/{inbound_job['id']}")
    api.get(f"/inbound-product-lines/{line_id}", expected=404)


@pytest.mark.parametrize("lpn_numbers, detail", [
    (["LPN-TEST-1", None], "LPN LPN-TEST-1 already exists"),
    (["LPN-X", "LPN-X"], "LPN numbers must be unique within a put-away"),
])
def test_put_away_rejects_lpn_numbers_in_use(api, inbound_job, stock, lpn_numbers, detail):
    first, _ = inbound_job["product_lines"]
    records = [
        {"inbound_product_line_id": first["id"], "hu_qty": 1, "lpn_number": lpn_number}
        for lpn_number in lpn_numbers
    ]
    error = api.post(f"/inbound-inventory/{inbound_job['id']}/put-away", {
        "warehouse_id": inbound_job["warehouse_id"],
        "put_away_records": records,
    }, expected=409)

    assert error["detail"] == detail
    assert api.get("/put-away-stock", params={"inbound_inventory_id": inbound_job["id"]})["total"] == 0
