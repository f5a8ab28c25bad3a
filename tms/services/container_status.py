"""
Container status transitions.

Import containers: expecting -> received -> put_away
Export containers: allocated -> picked_up -> dispatched

Each step is checked against the stock records before it is applied.
"""
from typing import Dict, List

from sqlalchemy.orm import Session

from tms.core.exceptions import InvalidInputError, InvalidStatusTransitionError
from tms.models.container import AllocationStage, ContainerDetail, ContainerStatus, Direction
from tms.models.warehouse import PickupStatus, PickupStock, PutAwayStock
from tms.services.booking_status import refresh_booking_status
from tms.utils.logging import get_logger

logger = get_logger(__name__)

CONTAINER_TRANSITIONS: Dict[Direction, Dict[str, List[str]]] = {
    Direction.IMPORT: {
        ContainerStatus.EXPECTING.value: [ContainerStatus.RECEIVED.value],
        ContainerStatus.RECEIVED.value: [ContainerStatus.PUT_AWAY.value],
        ContainerStatus.PUT_AWAY.value: [],
    },
    Direction.EXPORT: {
        ContainerStatus.ALLOCATED.value: [ContainerStatus.PICKED_UP.value],
        ContainerStatus.PICKED_UP.value: [ContainerStatus.DISPATCHED.value],
        ContainerStatus.DISPATCHED.value: [],
    },
}

INITIAL_STATUS = {
    Direction.IMPORT: ContainerStatus.EXPECTING.value,
    Direction.EXPORT: ContainerStatus.ALLOCATED.value,
}


def container_lines(container: ContainerDetail) -> List[dict]:
    return [line for allocation in container.allocations for line in (allocation.product_lines or [])]


def container_driver_assignment(container: ContainerDetail) -> dict:
    allocation = container.booking.driver_allocation or {}
    return (allocation.get("containers") or {}).get(container.id) or {}


def has_put_away_records(db: Session, container: ContainerDetail) -> bool:
    return db.query(PutAwayStock.id).filter(
        PutAwayStock.tenant_id == container.tenant_id,
        PutAwayStock.container_detail_id == container.id,
        PutAwayStock.is_deleted == False
    ).first() is not None


def has_completed_pickup(db: Session, container: ContainerDetail) -> bool:
    return db.query(PickupStock.id).filter(
        PickupStock.tenant_id == container.tenant_id,
        PickupStock.container_detail_id == container.id,
        PickupStock.pickup_status == PickupStatus.COMPLETED.value
    ).first() is not None


def can_transition(container: ContainerDetail, new_status: str) -> bool:
    allowed = CONTAINER_TRANSITIONS[Direction(container.direction)].get(container.status, [])
    return new_status in allowed


def validate_container_transition(db: Session, container: ContainerDetail, new_status: str) -> None:
    """Raise unless the container may move to new_status now."""
    if not can_transition(container, new_status):
        raise InvalidStatusTransitionError(container.status, new_status)

    if new_status == ContainerStatus.RECEIVED.value:
        lines = container_lines(container)
        if not all((line.get("received_qty") or 0) > 0 for line in lines):
            raise InvalidInputError(
                "All product lines must have received values before changing status to received"
            )

    elif new_status == ContainerStatus.PUT_AWAY.value:
        if not has_put_away_records(db, container):
            raise InvalidInputError("Put-away records must exist before changing status to put_away")

    elif new_status == ContainerStatus.PICKED_UP.value:
        lines = container_lines(container)
        if not all((line.get("picked_qty") or 0) > 0 for line in lines):
            raise InvalidInputError(
                "All product lines must have picked quantities before changing status to picked_up"
            )
        if not has_completed_pickup(db, container):
            raise InvalidInputError("A completed pickup is required before changing status to picked_up")

    elif new_status == ContainerStatus.DISPATCHED.value:
        assignment = container_driver_assignment(container)
        if not assignment.get("driver_id") or not assignment.get("vehicle_id"):
            raise InvalidInputError(
                "Driver and vehicle must be assigned before changing status to dispatched"
            )


def set_container_status(db: Session, container: ContainerDetail, new_status: str) -> ContainerDetail:
    """Validate, apply and roll the change up to the booking. Does not commit."""
    validate_container_transition(db, container, new_status)

    previous = container.status
    container.status = new_status

    if new_status == ContainerStatus.RECEIVED.value:
        for allocation in container.allocations:
            if allocation.stage == AllocationStage.EXPECTED.value:
                allocation.stage = AllocationStage.RECEIVED.value

    refresh_booking_status(db, container.booking)

    logger.info(
        f"Container {container.container_number} status {previous} -> {new_status}",
        extra={"container_id": container.id, "tenant_id": container.tenant_id}
    )
    return container
