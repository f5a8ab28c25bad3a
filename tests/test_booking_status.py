"""Booking lifecycle transitions and container-driven progress."""
import pytest

from tms.models.container import BookingStatus, ContainerBooking, Direction
from tms.services.booking_status import aggregate_booking_status, can_transition

from conftest import set_booking_status

IMPORT = Direction.IMPORT
EXPORT = Direction.EXPORT


@pytest.mark.parametrize("direction,statuses,expected", [
    (IMPORT, [], None),
    (IMPORT, ["expecting", "expecting"], BookingStatus.EXPECTING),
    (IMPORT, ["expecting", "received"], BookingStatus.PARTIALLY_RECEIVED),
    (IMPORT, ["received", "received"], BookingStatus.RECEIVED),
    (IMPORT, ["received", "put_away"], BookingStatus.PARTIALLY_PUT_AWAY),
    (IMPORT, ["put_away"], BookingStatus.PUT_AWAY),
    (EXPORT, ["allocated"], BookingStatus.ALLOCATED),
    (EXPORT, ["allocated", "picked_up"], BookingStatus.PARTIALLY_PICKED),
    (EXPORT, ["picked_up", "picked_up"], BookingStatus.PICKED),
    (EXPORT, ["picked_up", "dispatched"], BookingStatus.READY_TO_DISPATCH),
    (EXPORT, ["dispatched", "dispatched"], BookingStatus.DISPATCHED),
    # Allocated and dispatched with nothing picked up still counts as partially picked
    (EXPORT, ["allocated", "dispatched"], BookingStatus.PARTIALLY_PICKED),
])
def test_aggregate_booking_status(direction, statuses, expected):
    assert aggregate_booking_status(direction, statuses) == expected


@pytest.mark.parametrize("current,target,allowed", [
    ("draft", "in_progress", False),
    ("draft", "completed", False),
    ("draft", "cancelled", True),
    ("confirmed", "completed", False),
    ("confirmed", "draft", False),
    ("completed", "in_progress", False),
    ("completed", "cancelled", True),
    ("cancelled", "draft", False),
    ("cancelled", "cancelled", False),
    ("in_progress", "expecting", False),
])
def test_can_transition(current, target, allowed):
    booking = ContainerBooking(direction=IMPORT, status=current, containers=[], allocations=[])
    assert can_transition(booking, target)[0] is allowed


def test_progress_status_counts_as_in_progress():
    booking = ContainerBooking(direction=IMPORT, status="partially_received", containers=[], allocations=[])
    allowed, reason = can_transition(booking, "completed")
    assert not allowed
    assert reason == "Container details are required"


def test_confirmation_reports_first_missing_step(api):
    booking = api.post("/import-container-bookings", {"customer_reference": "C-1"})
    assert booking["status"] == "draft"
    assert booking["booking_code"].startswith("IMP-")

    error = set_booking_status(api, booking, "confirmed", expected=400)
    assert error["detail"] == (
        "Invalid status transition from draft to confirmed: Step 1 (Basic Info) is incomplete"
    )


def test_export_booking_needs_consignor(make_booking, api):
    booking, _ = make_booking("export", consignor_id=None)
    error = set_booking_status(api, booking, "confirmed", expected=400)
    assert "Consignor is required" in error["detail"]


def test_unknown_and_progress_statuses_are_rejected(make_booking, api):
    booking, _ = make_booking()
    api.patch(f"/import-container-bookings/{booking['id']}/status", {"status": "sideways"}, expected=400)
    error = set_booking_status(api, booking, "received", expected=400)
    assert "cannot be chosen" in error["detail"]


def test_lifecycle_through_progress(make_booking, api):
    booking, (container,) = make_booking()
    path = f"/import-container-bookings/{booking['id']}"

    assert api.get(f"{path}/next-statuses")["next_statuses"] == ["confirmed", "cancelled"]

    assert set_booking_status(api, booking, "confirmed")["status"] == "confirmed"
    assert api.get(f"{path}/next-statuses")["next_statuses"] == ["in_progress", "cancelled"]

    # Moving in progress picks up the container-driven status straight away
    assert set_booking_status(api, booking, "in_progress")["status"] == "expecting"

    error = set_booking_status(api, booking, "completed", expected=400)
    assert "Stock allocations are required" in error["detail"]

    api.post("/container-stock-allocations", {"container_detail_id": container["id"], "product_lines": []})
    api.patch(f"/container-details/{container['id']}/status", {"status": "received"})
    assert api.get(path)["status"] == "received"

    assert set_booking_status(api, booking, "completed")["status"] == "completed"
    assert api.get(f"{path}/next-statuses")["next_statuses"] == ["cancelled"]


def test_completed_and_cancelled_bookings_are_locked(make_booking, api):
    booking, _ = make_booking()
    path = f"/import-container-bookings/{booking['id']}"

    set_booking_status(api, booking, "cancelled")
    api.patch(path, {"job_notes": "too late"}, expected=400)
    api.post("/container-details", {"booking_id": booking["id"]}, expected=400)
    set_booking_status(api, booking, "draft", expected=400)


def test_only_draft_or_cancelled_bookings_can_be_deleted(make_booking, api):
    booking, (container,) = make_booking()
    path = f"/import-container-bookings/{booking['id']}"

    set_booking_status(api, booking, "confirmed")
    api.delete(path, expected=400)

    set_booking_status(api, booking, "cancelled")
    api.delete(path)
    api.get(path, expected=404)
    api.get(f"/container-details/{container['id']}", expected=404)


def test_bookings_are_split_by_direction(api):
    booking = api.post("/export-container-bookings", {})
    assert booking["booking_code"].startswith("EXP-")
    api.get(f"/import-container-bookings/{booking['id']}", expected=404)
    assert api.get("/import-container-bookings")["total"] == 0
    assert api.get("/export-container-bookings")["total"] == 1


def test_driver_allocation_merges_per_container(make_booking, api):
    booking, (first, second) = make_booking(containers=2)
    path = f"/import-container-bookings/{booking['id']}/driver-allocation"
    driver = api.post("/drivers", {"name": "Kim"})
    vehicle = api.post("/vehicles", {"fleet_number": "PM-7"})

    assert api.get(path) == {"containers": {}}

    api.put(path, {"containers": {first["id"]: {"driver_id": driver["id"]}}})
    api.put(path, {"containers": {
        first["id"]: {"vehicle_id": vehicle["id"]},
        second["id"]: {"driver_id": driver["id"]},
    }})

    containers = api.get(path)["containers"]
    assert containers[first["id"]]["driver_id"] == driver["id"]
    assert containers[first["id"]]["vehicle_id"] == vehicle["id"]
    assert containers[second["id"]]["driver_id"] == driver["id"]

    api.put(path, {"containers": {"not-a-container": {"driver_id": driver["id"]}}}, expected=400)
    api.put(path, {"containers": {first["id"]: {"driver_id": "no-such-driver"}}}, expected=404)
