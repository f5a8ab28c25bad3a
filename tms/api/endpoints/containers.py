"""
Container Detail Endpoints

Containers of import and export bookings, their status changes, and the
stock operations that happen per container:

- import: put-away of received stock
- export: pickup of allocated stock, then dispatch

RBAC: containers_* for the container itself, freight_* for stock operations.
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from tms.database import get_db
from tms.models.container import ContainerBooking, ContainerDetail, ContainerStatus, Direction
from tms.models.entities import ContainerSize, ShippingLine, Warehouse
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import PutAwayStock, StockStatus
from tms.schemas.container import (
    ContainerDetailCreate,
    ContainerDetailUpdate,
    ContainerDetailResponse,
    ContainerDetailListResponse,
    ContainerStatusUpdate,
)
from tms.schemas.stock import (
    PutAwayRequest,
    PutAwayResult,
    ExportPickupRequest,
    PickupResult,
    ContainerDispatchRequest,
)
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import InvalidInputError
from tms.services import codes
from tms.services.booking_status import refresh_booking_status
from tms.services.container_status import INITIAL_STATUS, set_container_status
from tms.services.pickup import dispatch_export_container, pickup_export_container
from tms.services.put_away import put_away_container
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/container-details", tags=["container details"])

LOCKED_BOOKING_STATUSES = ("completed", "cancelled")


def _check_references(db: Session, tenant: Tenant, values: dict) -> None:
    if values.get("warehouse_id"):
        Warehouse.get_for_tenant(db, tenant.id, values["warehouse_id"])
    if values.get("container_size_id"):
        ContainerSize.get_for_tenant(db, tenant.id, values["container_size_id"])
    if values.get("shipping_line_id"):
        ShippingLine.get_for_tenant(db, tenant.id, values["shipping_line_id"])


@router.get("", response_model=ContainerDetailListResponse)
async def list_containers(
    booking_id: Optional[str] = None,
    direction: Optional[Direction] = None,
    status_filter: Optional[str] = Query(None, alias="status"),
    container_number: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("containers_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(ContainerDetail).filter(ContainerDetail.tenant_id == tenant.id)

    if booking_id:
        query = query.filter(ContainerDetail.booking_id == booking_id)
    if direction:
        query = query.filter(ContainerDetail.direction == direction)
    if status_filter:
        query = query.filter(ContainerDetail.status == status_filter)
    if container_number:
        query = query.filter(ContainerDetail.container_number.ilike(f"%{container_number}%"))

    total, containers = pagination.apply(query.order_by(ContainerDetail.created_at.desc()))
    return ContainerDetailListResponse(
        items=containers, total=total, page=pagination.page, page_size=pagination.page_size
    )


@router.get("/{container_id}", response_model=ContainerDetailResponse)
async def get_container(
    container_id: str,
    current_user: TenantUser = Depends(require_permission("containers_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return ContainerDetail.get_for_tenant(db, tenant.id, container_id, "Container")


@router.post("", response_model=ContainerDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_container(
    container_data: ContainerDetailCreate,
    current_user: TenantUser = Depends(require_permission("containers_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Add a container to a booking.

    Direction comes from the booking; the status starts at expecting
    (import) or allocated (export).
    """
    booking = ContainerBooking.get_for_tenant(db, tenant.id, container_data.booking_id, "Container booking")
    if booking.status in LOCKED_BOOKING_STATUSES:
        raise InvalidInputError(f"Cannot add containers to a {booking.status} booking")

    values = container_data.model_dump(exclude_unset=True, exclude={"booking_id"})
    _check_references(db, tenant, values)
    values["container_number"] = values.get("container_number") or codes.generate_container_number()

    container = ContainerDetail(
        tenant_id=tenant.id,
        booking_id=booking.id,
        direction=booking.direction,
        status=INITIAL_STATUS[booking.direction],
        **values
    )
    db.add(container)
    db.flush()
    refresh_booking_status(db, booking)
    db.commit()
    db.refresh(container)

    logger.info(
        f"Container created: {container.container_number} on booking {booking.booking_code} by {current_user.id}",
        extra={"container_id": container.id, "booking_id": booking.id}
    )
    return container


@router.patch("/{container_id}", response_model=ContainerDetailResponse)
async def update_container(
    container_id: str,
    container_data: ContainerDetailUpdate,
    current_user: TenantUser = Depends(require_permission("containers_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    container = ContainerDetail.get_for_tenant(db, tenant.id, container_id, "Container")

    values = container_data.model_dump(exclude_unset=True)
    _check_references(db, tenant, values)
    if "container_number" in values and not values["container_number"]:
        raise InvalidInputError("Container number cannot be empty")

    for field, value in values.items():
        setattr(container, field, value)

    db.commit()
    db.refresh(container)

    logger.info(f"Container updated: {container.container_number} by {current_user.id}")
    return container


@router.delete("/{container_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_container(
    container_id: str,
    current_user: TenantUser = Depends(require_permission("containers_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Delete a container that has not progressed past its initial status.

    Stock allocated to an export container is released.
    """
    container = ContainerDetail.get_for_tenant(db, tenant.id, container_id, "Container")

    if container.status != INITIAL_STATUS[container.direction]:
        raise InvalidInputError(f"Cannot delete a container in status {container.status}")

    released = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.allocated_to_container_id == container.id,
        PutAwayStock.allocation_status == StockStatus.ALLOCATED.value
    ).all()
    for record in released:
        record.release()

    booking = container.booking
    db.delete(container)
    db.flush()
    refresh_booking_status(db, booking)
    db.commit()

    logger.info(
        f"Container deleted: {container_id} by {current_user.id}, released {len(released)} LPNs",
        extra={"container_id": container_id}
    )
    return None


@router.patch("/{container_id}/status", response_model=ContainerDetailResponse)
async def change_container_status(
    container_id: str,
    status_data: ContainerStatusUpdate,
    current_user: TenantUser = Depends(require_permission("containers_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    container = ContainerDetail.get_for_tenant(db, tenant.id, container_id, "Container")

    try:
        ContainerStatus(status_data.status)
    except ValueError:
        raise InvalidInputError(f"Unknown container status: {status_data.status}")

    set_container_status(db, container, status_data.status)
    db.commit()
    db.refresh(container)
    return container


@router.post("/{container_id}/put-away", response_model=PutAwayResult, status_code=status.HTTP_201_CREATED)
async def put_away(
    container_id: str,
    request_data: PutAwayRequest,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Put away received stock of an import container."""
    container = ContainerDetail.get_for_tenant(db, tenant.id, container_id, "Container")

    created, errors = put_away_container(db, tenant, container, request_data.warehouse_id, request_data.records)
    db.commit()

    logger.info(f"Container put-away: {container.container_number} by {current_user.id}")
    return PutAwayResult(created=created, errors=errors)


@router.post("/{container_id}/pickup", response_model=PickupResult, status_code=status.HTTP_201_CREATED)
async def pickup(
    container_id: str,
    request_data: ExportPickupRequest,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Pick allocated LPNs for an export container."""
    container = ContainerDetail.get_for_tenant(db, tenant.id, container_id, "Container")

    created, errors = pickup_export_container(db, tenant, current_user, container, request_data.pickups)
    db.commit()

    return PickupResult(created=created, errors=errors)


@router.post("/{container_id}/dispatch", response_model=ContainerDetailResponse)
async def dispatch(
    container_id: str,
    request_data: ContainerDispatchRequest,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    container = ContainerDetail.get_for_tenant(db, tenant.id, container_id, "Container")

    dispatch_export_container(db, tenant, container, request_data.driver_id, request_data.vehicle_id)
    db.commit()
    db.refresh(container)

    logger.info(f"Container dispatched: {container.container_number} by {current_user.id}")
    return container
