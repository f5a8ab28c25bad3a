"""
Container Booking Endpoints

Import and export bookings share one table and one set of routes; the
two routers differ only in direction and job-code prefix:

- /import-container-bookings  (IMP- codes)
- /export-container-bookings  (EXP- codes)

A booking of one direction is not visible through the other router.

RBAC: containers_view / containers_create / containers_edit / containers_delete
"""
import copy
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from tms.database import get_db
from tms.models.container import (
    BookingStatus,
    ContainerBooking,
    ContainerDetail,
    ContainerStockAllocation,
    Direction,
)
from tms.models.entities import Driver, Trailer, Vehicle, Vessel
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import PutAwayStock, StockStatus
from tms.schemas.container import (
    BookingCreate,
    BookingUpdate,
    BookingResponse,
    BookingListResponse,
    BookingStatusUpdate,
    NextStatusesResponse,
    DriverAllocation,
    ContainerDetailResponse,
    StockAllocationResponse,
)
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import InvalidInputError, InvalidStatusTransitionError, NotFoundError
from tms.services import booking_status, codes
from tms.utils.logging import get_logger

logger = get_logger(__name__)

# Bookings in these statuses can no longer be edited
LOCKED_STATUSES = (BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value)
# Only bookings in these statuses can be deleted
DELETABLE_STATUSES = (BookingStatus.DRAFT.value, BookingStatus.CANCELLED.value)

ROUTING_FIELDS = ("empty_routing", "full_routing")


def booking_values(data, exclude_unset: bool) -> dict:
    """Column values from a booking body; routing goes into JSON columns."""
    values = data.model_dump(exclude_unset=exclude_unset, exclude=set(ROUTING_FIELDS))
    for field in ROUTING_FIELDS:
        if field in data.model_fields_set or not exclude_unset:
            routing = getattr(data, field)
            values[field] = routing.model_dump(mode="json") if routing is not None else None
    return values


def get_booking(db: Session, tenant: Tenant, booking_id: str, direction: Direction) -> ContainerBooking:
    booking = db.query(ContainerBooking).filter(
        ContainerBooking.id == booking_id,
        ContainerBooking.tenant_id == tenant.id,  # CRITICAL: Tenant isolation
        ContainerBooking.direction == direction
    ).first()

    if not booking:
        raise NotFoundError(f"{direction.value.capitalize()} container booking", booking_id)
    return booking


def booking_router(direction: Direction, prefix: str, code_prefix: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[f"{direction.value} container bookings"])
    name = direction.value

    @router.get("", response_model=BookingListResponse, name=f"list_{name}_bookings")
    async def list_bookings(
        status_filter: Optional[str] = Query(None, alias="status"),
        q: Optional[str] = Query(None, description="Search booking code and references"),
        pagination: Pagination = Depends(),
        current_user: TenantUser = Depends(require_permission("containers_view")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        query = db.query(ContainerBooking).filter(
            ContainerBooking.tenant_id == tenant.id,
            ContainerBooking.direction == direction
        )
        if status_filter:
            query = query.filter(ContainerBooking.status == status_filter)
        if q:
            pattern = f"%{q}%"
            query = query.filter(
                ContainerBooking.booking_code.ilike(pattern)
                | ContainerBooking.customer_reference.ilike(pattern)
                | ContainerBooking.booking_reference.ilike(pattern)
            )

        total, bookings = pagination.apply(query.order_by(ContainerBooking.created_at.desc()))
        return BookingListResponse(
            items=bookings, total=total, page=pagination.page, page_size=pagination.page_size
        )

    @router.get("/{booking_id}", response_model=BookingResponse, name=f"get_{name}_booking")
    async def get_one(
        booking_id: str,
        current_user: TenantUser = Depends(require_permission("containers_view")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        return get_booking(db, tenant, booking_id, direction)

    @router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED,
                 name=f"create_{name}_booking")
    async def create_booking(
        booking_data: BookingCreate,
        current_user: TenantUser = Depends(require_permission("containers_create")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        """Create a draft booking with a generated booking code."""
        if booking_data.vessel_id:
            Vessel.get_for_tenant(db, tenant.id, booking_data.vessel_id)

        booking = ContainerBooking(
            tenant_id=tenant.id,
            direction=direction,
            booking_code=codes.generate_unique_job_code(db, tenant.id, code_prefix),
            status=BookingStatus.DRAFT.value,
            **booking_values(booking_data, exclude_unset=True)
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)

        logger.info(
            f"Booking created: {booking.booking_code} by {current_user.id}",
            extra={"booking_id": booking.id, "tenant_id": tenant.id}
        )
        return booking

    @router.patch("/{booking_id}", response_model=BookingResponse, name=f"update_{name}_booking")
    async def update_booking(
        booking_id: str,
        booking_data: BookingUpdate,
        current_user: TenantUser = Depends(require_permission("containers_edit")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        booking = get_booking(db, tenant, booking_id, direction)

        if booking.status in LOCKED_STATUSES:
            raise InvalidInputError(f"Cannot edit a {booking.status} booking")
        if booking_data.vessel_id:
            Vessel.get_for_tenant(db, tenant.id, booking_data.vessel_id)

        for field, value in booking_values(booking_data, exclude_unset=True).items():
            setattr(booking, field, value)

        db.commit()
        db.refresh(booking)

        logger.info(f"Booking updated: {booking.booking_code} by {current_user.id}")
        return booking

    @router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT, name=f"delete_{name}_booking")
    async def delete_booking(
        booking_id: str,
        current_user: TenantUser = Depends(require_permission("containers_delete")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        """
        Delete a draft or cancelled booking with its containers and allocations.

        LPNs its allocations hold and have not dispatched go back to
        available stock.
        """
        booking = get_booking(db, tenant, booking_id, direction)

        if booking.status not in DELETABLE_STATUSES:
            raise InvalidInputError("Only draft or cancelled bookings can be deleted")

        allocation_ids = [allocation.id for allocation in booking.allocations]
        released = []
        if allocation_ids:
            released = db.query(PutAwayStock).filter(
                PutAwayStock.tenant_id == tenant.id,
                PutAwayStock.allocated_to_allocation_id.in_(allocation_ids),
                PutAwayStock.allocation_status.in_([StockStatus.ALLOCATED.value, StockStatus.PICKED.value])
            ).all()
        for record in released:
            record.release()

        db.delete(booking)
        db.commit()

        logger.info(
            f"Booking deleted: {booking.booking_code} by {current_user.id}, released {len(released)} LPNs"
        )
        return None

    @router.patch("/{booking_id}/status", response_model=BookingResponse, name=f"update_{name}_booking_status")
    async def change_status(
        booking_id: str,
        status_data: BookingStatusUpdate,
        current_user: TenantUser = Depends(require_permission("containers_edit")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        """
        Move the booking through its lifecycle.

        Only lifecycle statuses can be requested; progress statuses
        follow the containers once the booking is in progress.
        """
        booking = get_booking(db, tenant, booking_id, direction)

        try:
            BookingStatus(status_data.status)
        except ValueError:
            raise InvalidInputError(f"Unknown booking status: {status_data.status}")

        allowed, reason = booking_status.can_transition(booking, status_data.status)
        if not allowed:
            raise InvalidStatusTransitionError(booking.status, status_data.status, reason or "")

        previous = booking.status
        booking.status = status_data.status
        if status_data.status == BookingStatus.IN_PROGRESS.value:
            booking_status.refresh_booking_status(db, booking)

        db.commit()
        db.refresh(booking)

        logger.info(
            f"Booking {booking.booking_code} status {previous} -> {booking.status} by {current_user.id}",
            extra={"booking_id": booking.id, "tenant_id": tenant.id}
        )
        return booking

    @router.get("/{booking_id}/next-statuses", response_model=NextStatusesResponse,
                name=f"{name}_booking_next_statuses")
    async def next_statuses(
        booking_id: str,
        current_user: TenantUser = Depends(require_permission("containers_view")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        booking = get_booking(db, tenant, booking_id, direction)
        return NextStatusesResponse(
            current_status=booking.status,
            next_statuses=booking_status.next_valid_statuses(booking)
        )

    @router.get("/{booking_id}/driver-allocation", response_model=DriverAllocation,
                name=f"get_{name}_driver_allocation")
    async def get_driver_allocation(
        booking_id: str,
        current_user: TenantUser = Depends(require_permission("containers_view")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        booking = get_booking(db, tenant, booking_id, direction)
        return DriverAllocation(**(booking.driver_allocation or {}))

    @router.put("/{booking_id}/driver-allocation", response_model=DriverAllocation,
                name=f"set_{name}_driver_allocation")
    async def set_driver_allocation(
        booking_id: str,
        allocation_data: DriverAllocation,
        current_user: TenantUser = Depends(require_permission("containers_edit")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        """
        Assign drivers, vehicles and trailers to the booking's containers.

        Assignments are merged per container; containers not in the body
        keep their current assignment.
        """
        booking = get_booking(db, tenant, booking_id, direction)

        container_ids = {container.id for container in booking.containers}
        for container_id, assignment in allocation_data.containers.items():
            if container_id not in container_ids:
                raise InvalidInputError(f"Container {container_id} does not belong to this booking")
            if assignment.driver_id:
                Driver.get_for_tenant(db, tenant.id, assignment.driver_id)
            if assignment.vehicle_id:
                Vehicle.get_for_tenant(db, tenant.id, assignment.vehicle_id)
            if assignment.trailer_id:
                Trailer.get_for_tenant(db, tenant.id, assignment.trailer_id)

        driver_allocation = copy.deepcopy(booking.driver_allocation or {})
        containers = driver_allocation.setdefault("containers", {})
        for container_id, assignment in allocation_data.containers.items():
            current = containers.get(container_id) or {}
            current.update(assignment.model_dump(mode="json", exclude_unset=True))
            containers[container_id] = current
        booking.driver_allocation = driver_allocation

        db.commit()
        db.refresh(booking)

        logger.info(f"Driver allocation updated for booking {booking.booking_code} by {current_user.id}")
        return DriverAllocation(**booking.driver_allocation)

    @router.get("/{booking_id}/container-details", response_model=list[ContainerDetailResponse],
                name=f"{name}_booking_containers")
    async def booking_containers(
        booking_id: str,
        current_user: TenantUser = Depends(require_permission("containers_view")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        booking = get_booking(db, tenant, booking_id, direction)
        return db.query(ContainerDetail).filter(
            ContainerDetail.tenant_id == tenant.id,
            ContainerDetail.booking_id == booking.id
        ).order_by(ContainerDetail.created_at).all()

    @router.get("/{booking_id}/stock-allocations", response_model=list[StockAllocationResponse],
                name=f"{name}_booking_allocations")
    async def booking_allocations(
        booking_id: str,
        current_user: TenantUser = Depends(require_permission("containers_view")),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        booking = get_booking(db, tenant, booking_id, direction)
        return db.query(ContainerStockAllocation).filter(
            ContainerStockAllocation.tenant_id == tenant.id,
            ContainerStockAllocation.booking_id == booking.id
        ).order_by(ContainerStockAllocation.created_at).all()

    return router


import_router = booking_router(Direction.IMPORT, "/import-container-bookings", codes.IMPORT_PREFIX)
export_router = booking_router(Direction.EXPORT, "/export-container-bookings", codes.EXPORT_PREFIX)
