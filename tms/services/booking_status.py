"""
Container booking lifecycle.

Users move a booking draft -> confirmed -> in_progress -> completed, and
may cancel it at any point. While in progress, the booking status tracks
its containers (expecting, partially_received, ... dispatched); those
progress values are written by refresh_booking_status, never by users.
"""
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from tms.models.container import (
    AllocationStage,
    BookingStatus,
    ContainerBooking,
    ContainerStatus,
    Direction,
)
from tms.utils.logging import get_logger

logger = get_logger(__name__)

IMPORT_PROGRESS = (
    BookingStatus.EXPECTING,
    BookingStatus.PARTIALLY_RECEIVED,
    BookingStatus.RECEIVED,
    BookingStatus.PARTIALLY_PUT_AWAY,
    BookingStatus.PUT_AWAY,
)

EXPORT_PROGRESS = (
    BookingStatus.ALLOCATED,
    BookingStatus.PARTIALLY_PICKED,
    BookingStatus.PICKED,
    BookingStatus.READY_TO_DISPATCH,
    BookingStatus.DISPATCHED,
)

# Statuses a user may set through the status endpoint
LIFECYCLE_STATUSES = (
    BookingStatus.DRAFT,
    BookingStatus.CONFIRMED,
    BookingStatus.IN_PROGRESS,
    BookingStatus.COMPLETED,
    BookingStatus.CANCELLED,
)

ALLOCATION_STAGES = {
    Direction.IMPORT: (AllocationStage.EXPECTED, AllocationStage.RECEIVED, AllocationStage.PUT_AWAY),
    Direction.EXPORT: (AllocationStage.ALLOCATED, AllocationStage.PICKED, AllocationStage.DISPATCHED),
}

Check = Tuple[bool, Optional[str]]


def progress_statuses(direction: Direction) -> Tuple[BookingStatus, ...]:
    return IMPORT_PROGRESS if direction == Direction.IMPORT else EXPORT_PROGRESS


def is_in_progress(booking: ContainerBooking) -> bool:
    """in_progress itself or any container-driven progress status."""
    status = BookingStatus(booking.status)
    return status == BookingStatus.IN_PROGRESS or status in progress_statuses(booking.direction)


def validate_for_confirmation(booking: ContainerBooking) -> Check:
    if not booking.customer_reference or not booking.booking_reference or not booking.charge_to_id:
        return False, "Step 1 (Basic Info) is incomplete"

    if booking.direction == Direction.IMPORT and not booking.consignee_id:
        return False, "Consignee is required for import bookings"

    if booking.direction == Direction.EXPORT and not booking.consignor_id:
        return False, "Consignor is required for export bookings"

    if not booking.vessel_id:
        return False, "Step 2 (Vessel Info) is incomplete"

    if not booking.from_id or not booking.to_id or not booking.container_size_ids:
        return False, "Step 3 (Locations) is incomplete"

    if not booking.container_quantities:
        return False, "Container quantities are required"

    empty_routing = booking.empty_routing or {}
    full_routing = booking.full_routing or {}
    if not empty_routing or not full_routing:
        return False, "Step 4 (Routing) is incomplete"

    if not (
        empty_routing.get("shipping_line_id")
        and empty_routing.get("pickup_location_id")
        and empty_routing.get("dropoff_location_id")
    ):
        return False, "Empty routing is incomplete"

    if not (full_routing.get("pickup_location_id") and full_routing.get("dropoff_location_id")):
        return False, "Full routing is incomplete"

    if not booking.containers:
        return False, "Step 5 (Container Details) is incomplete"

    if any(not container.container_number for container in booking.containers):
        return False, "All containers must have container numbers and be saved"

    return True, None


def validate_for_in_progress(booking: ContainerBooking) -> Check:
    if not booking.containers:
        return False, "Container details are required"
    return True, None


def validate_for_completed(booking: ContainerBooking) -> Check:
    if not booking.containers:
        return False, "Container details are required"

    if not booking.allocations:
        return False, "Stock allocations are required"

    allocated_container_ids = {a.container_detail_id for a in booking.allocations}
    missing = [c for c in booking.containers if c.id not in allocated_container_ids]
    if missing:
        return False, f"Stock allocations missing for {len(missing)} container(s)"

    valid_stages = {stage.value for stage in ALLOCATION_STAGES[booking.direction]}
    if any(a.stage not in valid_stages for a in booking.allocations):
        return False, "Some stock allocations are incomplete"

    return True, None


def can_transition(booking: ContainerBooking, new_status: str) -> Check:
    """Whether a user may move the booking to new_status, and why not."""
    current = BookingStatus(booking.status)
    target = BookingStatus(new_status)

    if target not in LIFECYCLE_STATUSES:
        return False, f"{target.value} is set from container progress and cannot be chosen"

    if current == BookingStatus.CANCELLED:
        return False, "Cannot transition from cancelled status"

    if target == BookingStatus.CANCELLED:
        return True, None

    if current == BookingStatus.DRAFT:
        if target == BookingStatus.CONFIRMED:
            return validate_for_confirmation(booking)
        return False, "Can only transition to confirmed from draft"

    if current == BookingStatus.CONFIRMED:
        if target == BookingStatus.IN_PROGRESS:
            return validate_for_in_progress(booking)
        return False, "Can only transition to in_progress from confirmed"

    if is_in_progress(booking):
        if target == BookingStatus.COMPLETED:
            return validate_for_completed(booking)
        return False, "Can only transition to completed from in_progress"

    if current == BookingStatus.COMPLETED:
        return False, "Cannot transition from completed status"

    return False, "Unknown current status"


def next_valid_statuses(booking: ContainerBooking) -> List[str]:
    candidates = [
        BookingStatus.CONFIRMED,
        BookingStatus.IN_PROGRESS,
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
    ]
    return [status.value for status in candidates if can_transition(booking, status.value)[0]]


def aggregate_booking_status(direction: Direction, container_statuses: List[str]) -> Optional[BookingStatus]:
    """
    Booking progress implied by its containers' statuses.

    Returns None when the mix of statuses implies nothing, e.g. no
    containers or an export with some allocated and some dispatched.
    """
    if not container_statuses:
        return None

    def all_are(status: ContainerStatus) -> bool:
        return all(s == status.value for s in container_statuses)

    def some_are(status: ContainerStatus) -> bool:
        return any(s == status.value for s in container_statuses)

    if direction == Direction.IMPORT:
        if all_are(ContainerStatus.PUT_AWAY):
            return BookingStatus.PUT_AWAY
        if some_are(ContainerStatus.PUT_AWAY):
            return BookingStatus.PARTIALLY_PUT_AWAY
        if all_are(ContainerStatus.RECEIVED):
            return BookingStatus.RECEIVED
        if some_are(ContainerStatus.RECEIVED):
            return BookingStatus.PARTIALLY_RECEIVED
        if all_are(ContainerStatus.EXPECTING):
            return BookingStatus.EXPECTING
        return None

    if all_are(ContainerStatus.DISPATCHED):
        return BookingStatus.DISPATCHED
    if some_are(ContainerStatus.DISPATCHED) and some_are(ContainerStatus.PICKED_UP):
        return BookingStatus.READY_TO_DISPATCH
    if all_are(ContainerStatus.PICKED_UP):
        return BookingStatus.PICKED
    if some_are(ContainerStatus.ALLOCATED) and (
        some_are(ContainerStatus.PICKED_UP) or some_are(ContainerStatus.DISPATCHED)
    ):
        return BookingStatus.PARTIALLY_PICKED
    if all_are(ContainerStatus.ALLOCATED):
        return BookingStatus.ALLOCATED
    return None


def refresh_booking_status(db: Session, booking: ContainerBooking) -> Optional[str]:
    """
    Write the container-driven progress status onto an in-progress booking.

    Drafts, confirmed, completed and cancelled bookings are left alone.
    Returns the new status when it changed. Does not commit.
    """
    if not is_in_progress(booking):
        return None

    db.flush()
    db.refresh(booking)
    new_status = aggregate_booking_status(
        booking.direction, [container.status for container in booking.containers]
    )
    if new_status is None or new_status.value == booking.status:
        return None

    logger.info(
        f"Booking {booking.booking_code} status {booking.status} -> {new_status.value}",
        extra={"booking_id": booking.id, "tenant_id": booking.tenant_id}
    )
    booking.status = new_status.value
    return booking.status
