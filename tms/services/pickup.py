"""
Pickup and dispatch of allocated stock.

A pickup moves allocated LPNs to picked and records what was taken in a
PickupStock row. Only completed pickups count towards line quantities
and status roll-ups; a draft pickup holds its LPNs until it is completed,
cancelled or deleted.
"""
import copy
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from tms.config import get_settings
from tms.core.exceptions import InvalidInputError
from tms.models.container import (
    AllocationStage,
    ContainerDetail,
    ContainerStatus,
    ContainerStockAllocation,
    Direction,
)
from tms.models.entities import Driver, Vehicle
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import (
    Dispatch,
    DispatchStatus,
    OutboundInventory,
    OutboundProductLine,
    OutboundStatus,
    PickupStatus,
    PickupStock,
    PutAwayStock,
    StockStatus,
)
from tms.schemas.stock import ExportPickupItem, ItemError
from tms.services.container_status import container_lines, set_container_status
from tms.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def _load_lpns(db: Session, tenant: Tenant, lpn_ids: List[str]) -> List[PutAwayStock]:
    if not lpn_ids:
        raise InvalidInputError("lpn_ids are required")

    records = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.id.in_(lpn_ids),
        PutAwayStock.is_deleted == False
    ).all()
    if len(records) != len(set(lpn_ids)):
        raise InvalidInputError("One or more LPNs were not found")
    return records


def _picked_lpns(records: List[PutAwayStock]) -> List[dict]:
    return [
        {
            "lpn_id": record.id,
            "lpn_number": record.lpn_number,
            "hu_qty": record.hu_qty,
            "location": record.location,
        }
        for record in records
    ]


def _new_pickup(
    tenant: Tenant,
    user: TenantUser,
    records: List[PutAwayStock],
    buffer_qty: float,
    notes: Optional[str],
    complete: bool,
    **links,
) -> PickupStock:
    picked_up_qty = sum(record.hu_qty or 0 for record in records)
    return PickupStock(
        tenant_id=tenant.id,
        picked_up_lpns=_picked_lpns(records),
        picked_up_qty=picked_up_qty,
        buffer_qty=buffer_qty or 0,
        final_picked_up_qty=picked_up_qty + (buffer_qty or 0),
        pickup_status=PickupStatus.COMPLETED.value if complete else PickupStatus.DRAFT.value,
        picked_up_by=user.id,
        notes=notes,
        **links,
    )


def allocation_fully_picked(allocation: ContainerStockAllocation) -> bool:
    lines = [line for line in (allocation.product_lines or []) if (line.get("allocated_qty") or 0) > 0]
    if not lines:
        return False
    return all(
        (line.get("picked_qty") or 0) >= line["allocated_qty"] - settings.QUANTITY_TOLERANCE
        for line in lines
    )


def _complete_container_pickup(db: Session, pickup: PickupStock) -> None:
    """Roll a completed container pickup into its line, allocation and container."""
    allocation = db.query(ContainerStockAllocation).filter(
        ContainerStockAllocation.id == pickup.container_stock_allocation_id,
        ContainerStockAllocation.tenant_id == pickup.tenant_id
    ).first()
    if allocation is None:
        return

    lines = copy.deepcopy(allocation.product_lines or [])
    line = lines[pickup.product_line_index]
    line["picked_qty"] = (line.get("picked_qty") or 0) + pickup.picked_up_qty
    if line.get("weight_per_hu"):
        line["picked_weight"] = round(float(line["weight_per_hu"]) * line["picked_qty"], 3)
    allocation.product_lines = lines

    if allocation.stage == AllocationStage.ALLOCATED.value and allocation_fully_picked(allocation):
        logger.info(f"Allocation {allocation.id} stage allocated -> picked")
        allocation.stage = AllocationStage.PICKED.value

    container = allocation.container
    if container.status != ContainerStatus.ALLOCATED.value:
        return
    every_allocation_picked = all(a.stage == AllocationStage.PICKED.value for a in container.allocations)
    every_line_picked = all((l.get("picked_qty") or 0) > 0 for l in container_lines(container))
    if every_allocation_picked and every_line_picked:
        db.flush()
        set_container_status(db, container, ContainerStatus.PICKED_UP.value)


def refresh_outbound_pick_status(db: Session, job: OutboundInventory) -> str:
    """Set the job to picked or partially_picked from its completed pickups."""
    if job.status in (OutboundStatus.READY_TO_DISPATCH.value, OutboundStatus.DISPATCHED.value):
        return job.status

    db.flush()
    picked_line_ids = {
        row.outbound_product_line_id for row in db.query(PickupStock.outbound_product_line_id).filter(
            PickupStock.tenant_id == job.tenant_id,
            PickupStock.outbound_inventory_id == job.id,
            PickupStock.pickup_status == PickupStatus.COMPLETED.value
        ).all()
    }
    line_ids = {line.id for line in job.product_lines}

    previous = job.status
    if line_ids and line_ids <= picked_line_ids:
        job.status = OutboundStatus.PICKED.value
    elif picked_line_ids & line_ids and job.status != OutboundStatus.PICKED.value:
        job.status = OutboundStatus.PARTIALLY_PICKED.value

    if job.status != previous:
        logger.info(
            f"Outbound job {job.job_code} status {previous} -> {job.status}",
            extra={"job_id": job.id, "tenant_id": job.tenant_id}
        )
    return job.status


def complete_pickup(db: Session, pickup: PickupStock) -> None:
    """Apply the effects of a pickup that has just become completed."""
    if pickup.container_stock_allocation_id:
        _complete_container_pickup(db, pickup)
    elif pickup.outbound_inventory_id:
        job = db.query(OutboundInventory).filter(
            OutboundInventory.id == pickup.outbound_inventory_id,
            OutboundInventory.tenant_id == pickup.tenant_id
        ).first()
        if job is not None:
            refresh_outbound_pick_status(db, job)


def pickup_export_container(
    db: Session,
    tenant: Tenant,
    user: TenantUser,
    container: ContainerDetail,
    pickups: List[ExportPickupItem],
):
    """
    Pick allocated LPNs for an export container.

    Returns (created_pickups, errors). Does not commit.
    """
    if container.direction != Direction.EXPORT:
        raise InvalidInputError("Pickup is only available for export containers")
    if container.status != ContainerStatus.ALLOCATED.value:
        raise InvalidInputError(f"Cannot pick up a container in status {container.status}")
    if not pickups:
        raise InvalidInputError("Pickup items are required")

    allocations = {allocation.id: allocation for allocation in container.allocations}
    created: List[PickupStock] = []
    errors: List[ItemError] = []

    for position, item in enumerate(pickups):
        try:
            allocation = allocations.get(item.allocation_id)
            if allocation is None:
                raise InvalidInputError("Allocation does not belong to this container")
            if not 0 <= item.product_line_index < len(allocation.product_lines or []):
                raise InvalidInputError(f"Product line index {item.product_line_index} is out of range")

            records = _load_lpns(db, tenant, item.lpn_ids)
            for record in records:
                if (
                    record.allocated_to_allocation_id != allocation.id
                    or record.allocation_status != StockStatus.ALLOCATED.value
                ):
                    raise InvalidInputError(f"LPN {record.lpn_number} is not allocated to this allocation")
        except InvalidInputError as e:
            errors.append(ItemError(index=position, message=e.detail))
            continue

        for record in records:
            record.allocation_status = StockStatus.PICKED.value

        pickup = _new_pickup(
            tenant, user, records, item.buffer_qty, item.notes, item.complete,
            container_detail_id=container.id,
            container_stock_allocation_id=allocation.id,
            product_line_index=item.product_line_index,
        )
        db.add(pickup)
        db.flush()
        created.append(pickup)

        if item.complete:
            complete_pickup(db, pickup)

    logger.info(
        f"Picked {len(created)}/{len(pickups)} items for container {container.container_number}",
        extra={"container_id": container.id, "tenant_id": tenant.id, "user_id": user.id}
    )
    return created, errors


def pickup_outbound_line(
    db: Session,
    tenant: Tenant,
    user: TenantUser,
    line: OutboundProductLine,
    lpn_ids: List[str],
    buffer_qty: float = 0,
    notes: Optional[str] = None,
    complete: bool = True,
) -> PickupStock:
    """Pick allocated LPNs for one outbound product line. Does not commit."""
    job = line.job
    if job.status in (OutboundStatus.READY_TO_DISPATCH.value, OutboundStatus.DISPATCHED.value):
        raise InvalidInputError(f"Cannot pick up stock for a job in status {job.status}")

    records = _load_lpns(db, tenant, lpn_ids)
    for record in records:
        if (
            record.allocated_to_outbound_line_id != line.id
            or record.allocated_to_outbound_id != job.id
            or record.allocation_status != StockStatus.ALLOCATED.value
        ):
            raise InvalidInputError(f"LPN {record.lpn_number} is not allocated to this product line")

    for record in records:
        record.allocation_status = StockStatus.PICKED.value

    pickup = _new_pickup(
        tenant, user, records, buffer_qty, notes, complete,
        outbound_inventory_id=job.id,
        outbound_product_line_id=line.id,
    )
    db.add(pickup)
    db.flush()

    if complete:
        complete_pickup(db, pickup)

    logger.info(
        f"Picked {len(records)} LPNs for outbound job {job.job_code}",
        extra={"job_id": job.id, "tenant_id": tenant.id, "user_id": user.id}
    )
    return pickup


def revert_pickup_lpns(db: Session, pickup: PickupStock) -> int:
    """Return the pickup's picked LPNs to allocated. Returns how many moved."""
    lpn_ids = [ref.get("lpn_id") for ref in (pickup.picked_up_lpns or []) if ref.get("lpn_id")]
    if not lpn_ids:
        return 0

    records = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == pickup.tenant_id,
        PutAwayStock.id.in_(lpn_ids),
        PutAwayStock.allocation_status == StockStatus.PICKED.value
    ).all()
    for record in records:
        record.allocation_status = StockStatus.ALLOCATED.value
    return len(records)


def update_pickup_stock(db: Session, pickup: PickupStock, changes: dict) -> PickupStock:
    """
    Edit a draft pickup.

    Completing it applies its quantities; cancelling it releases its
    LPNs back to allocated. Does not commit.
    """
    if pickup.pickup_status != PickupStatus.DRAFT.value:
        raise InvalidInputError("Only draft pickups can be updated")

    if "buffer_qty" in changes and changes["buffer_qty"] is not None:
        pickup.buffer_qty = changes["buffer_qty"]
    if "notes" in changes:
        pickup.notes = changes["notes"]
    pickup.final_picked_up_qty = (pickup.picked_up_qty or 0) + (pickup.buffer_qty or 0)

    new_status = changes.get("pickup_status")
    if new_status and new_status != pickup.pickup_status:
        pickup.pickup_status = new_status
        if new_status == PickupStatus.COMPLETED.value:
            db.flush()
            complete_pickup(db, pickup)
        elif new_status == PickupStatus.CANCELLED.value:
            revert_pickup_lpns(db, pickup)

    return pickup


def delete_pickup_stock(db: Session, pickup: PickupStock) -> int:
    """Delete a draft pickup and revert its LPNs. Does not commit."""
    if pickup.pickup_status != PickupStatus.DRAFT.value:
        raise InvalidInputError("Only draft pickups can be deleted")

    reverted = revert_pickup_lpns(db, pickup)
    db.delete(pickup)
    return reverted


def dispatch_export_container(
    db: Session,
    tenant: Tenant,
    container: ContainerDetail,
    driver_id: str,
    vehicle_id: str,
) -> ContainerDetail:
    """Assign driver and vehicle and mark the container dispatched. Does not commit."""
    if container.direction != Direction.EXPORT:
        raise InvalidInputError("Dispatch is only available for export containers")
    if container.status != ContainerStatus.PICKED_UP.value:
        raise InvalidInputError("Container must be picked up before dispatch")

    driver = Driver.get_for_tenant(db, tenant.id, driver_id)
    vehicle = Vehicle.get_for_tenant(db, tenant.id, vehicle_id)

    booking = container.booking
    driver_allocation = copy.deepcopy(booking.driver_allocation or {})
    driver_allocation.setdefault("containers", {})[container.id] = {
        "driver_id": driver.id,
        "vehicle_id": vehicle.id,
        "dispatched_at": datetime.utcnow().isoformat(),
    }
    booking.driver_allocation = driver_allocation

    set_container_status(db, container, ContainerStatus.DISPATCHED.value)

    for allocation in container.allocations:
        allocation.stage = AllocationStage.DISPATCHED.value
        db.query(PutAwayStock).filter(
            PutAwayStock.tenant_id == tenant.id,
            PutAwayStock.allocated_to_allocation_id == allocation.id,
            PutAwayStock.allocation_status == StockStatus.PICKED.value
        ).update({"allocation_status": StockStatus.DISPATCHED.value}, synchronize_session="fetch")

    logger.info(
        f"Dispatched container {container.container_number} with driver {driver.id} vehicle {vehicle.id}",
        extra={"container_id": container.id, "tenant_id": tenant.id}
    )
    return container


def complete_outbound_pickup(job: OutboundInventory) -> OutboundInventory:
    if job.status != OutboundStatus.PICKED.value:
        raise InvalidInputError("All product lines must be picked before completing pickup")
    job.status = OutboundStatus.READY_TO_DISPATCH.value
    logger.info(f"Outbound job {job.job_code} ready to dispatch", extra={"job_id": job.id})
    return job


def dispatch_outbound(
    db: Session,
    tenant: Tenant,
    user: TenantUser,
    job: OutboundInventory,
    vehicle_id: str,
    driver_id: Optional[str] = None,
    dispatch_date=None,
    dispatch_time: Optional[str] = None,
    notes: Optional[str] = None,
) -> Dispatch:
    """Create the dispatch record for a ready job and ship its picked LPNs. Does not commit."""
    if job.status != OutboundStatus.READY_TO_DISPATCH.value:
        raise InvalidInputError("Job must be ready to dispatch")
    if not vehicle_id:
        raise InvalidInputError("Vehicle is required for dispatch")

    vehicle = Vehicle.get_for_tenant(db, tenant.id, vehicle_id)
    driver = Driver.get_for_tenant(db, tenant.id, driver_id) if driver_id else None

    dispatch = Dispatch(
        tenant_id=tenant.id,
        outbound_inventory_id=job.id,
        dispatch_date=dispatch_date or datetime.utcnow().date(),
        dispatch_time=dispatch_time,
        driver_id=driver.id if driver else None,
        vehicle_id=vehicle.id,
        status=DispatchStatus.ALLOCATED.value,
        notes=notes,
        created_by=user.id,
        allocated_at=datetime.utcnow(),
    )
    db.add(dispatch)

    job.status = OutboundStatus.DISPATCHED.value
    db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.allocated_to_outbound_id == job.id,
        PutAwayStock.allocation_status == StockStatus.PICKED.value
    ).update({"allocation_status": StockStatus.DISPATCHED.value}, synchronize_session="fetch")
    db.flush()

    logger.info(
        f"Dispatched outbound job {job.job_code}",
        extra={"job_id": job.id, "tenant_id": tenant.id, "user_id": user.id}
    )
    return dispatch


def outbound_pickup_status(db: Session, job: OutboundInventory) -> dict:
    pickups = db.query(PickupStock).filter(
        PickupStock.tenant_id == job.tenant_id,
        PickupStock.outbound_inventory_id == job.id,
        PickupStock.pickup_status == PickupStatus.COMPLETED.value
    ).all()
    picked_line_ids = {pickup.outbound_product_line_id for pickup in pickups}
    total = len(job.product_lines)
    picked = len([line for line in job.product_lines if line.id in picked_line_ids])

    return {
        "job_id": job.id,
        "status": job.status,
        "total_product_lines": total,
        "picked_product_lines": picked,
        "all_picked": total > 0 and picked == total,
        "total_picked_qty": sum(pickup.final_picked_up_qty or 0 for pickup in pickups),
        "pickup_records": len(pickups),
        "can_dispatch": job.status == OutboundStatus.READY_TO_DISPATCH.value,
    }
