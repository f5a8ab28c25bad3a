"""
Dispatch Endpoints

Dispatch records for outbound jobs. A planned dispatch becomes allocated
once a driver and vehicle are assigned.

RBAC: transportation_view / transportation_create / transportation_edit /
transportation_delete
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from tms.database import get_db
from tms.models.entities import Driver, Vehicle
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import Dispatch, DispatchStatus, OutboundInventory
from tms.schemas.warehouse import (
    DispatchCreate,
    DispatchUpdate,
    DispatchAllocateRequest,
    DispatchResponse,
    DispatchListResponse,
)
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import InvalidInputError
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/dispatches", tags=["dispatches"])


def _check_references(db: Session, tenant: Tenant, values: dict) -> None:
    if values.get("outbound_inventory_id"):
        OutboundInventory.get_for_tenant(db, tenant.id, values["outbound_inventory_id"], "Outbound job")
    if values.get("driver_id"):
        Driver.get_for_tenant(db, tenant.id, values["driver_id"])
    if values.get("vehicle_id"):
        Vehicle.get_for_tenant(db, tenant.id, values["vehicle_id"])


@router.get("", response_model=DispatchListResponse)
async def list_dispatches(
    status_filter: Optional[DispatchStatus] = Query(None, alias="status"),
    outbound_inventory_id: Optional[str] = None,
    driver_id: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("transportation_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(Dispatch).filter(Dispatch.tenant_id == tenant.id)
    if status_filter:
        query = query.filter(Dispatch.status == status_filter.value)
    if outbound_inventory_id:
        query = query.filter(Dispatch.outbound_inventory_id == outbound_inventory_id)
    if driver_id:
        query = query.filter(Dispatch.driver_id == driver_id)

    total, dispatches = pagination.apply(query.order_by(Dispatch.created_at.desc()))
    return DispatchListResponse(
        items=dispatches, total=total, page=pagination.page, page_size=pagination.page_size
    )


@router.get("/{dispatch_id}", response_model=DispatchResponse)
async def get_dispatch(
    dispatch_id: str,
    current_user: TenantUser = Depends(require_permission("transportation_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return Dispatch.get_for_tenant(db, tenant.id, dispatch_id)


@router.post("", response_model=DispatchResponse, status_code=status.HTTP_201_CREATED)
async def create_dispatch(
    dispatch_data: DispatchCreate,
    current_user: TenantUser = Depends(require_permission("transportation_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    values = dispatch_data.model_dump()
    _check_references(db, tenant, values)

    record = Dispatch(
        tenant_id=tenant.id,
        status=DispatchStatus.PLANNED.value,
        created_by=current_user.id,
        **values
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(f"Dispatch created: {record.id} by {current_user.id}")
    return record


@router.patch("/{dispatch_id}", response_model=DispatchResponse)
async def update_dispatch(
    dispatch_id: str,
    dispatch_data: DispatchUpdate,
    current_user: TenantUser = Depends(require_permission("transportation_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    record = Dispatch.get_for_tenant(db, tenant.id, dispatch_id)

    values = dispatch_data.model_dump(exclude_unset=True)
    _check_references(db, tenant, values)
    for field, value in values.items():
        setattr(record, field, value)

    db.commit()
    db.refresh(record)

    logger.info(f"Dispatch updated: {record.id} ({record.status}) by {current_user.id}")
    return record


@router.delete("/{dispatch_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_dispatch(
    dispatch_id: str,
    current_user: TenantUser = Depends(require_permission("transportation_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    record = Dispatch.get_for_tenant(db, tenant.id, dispatch_id)
    db.delete(record)
    db.commit()

    logger.info(f"Dispatch deleted: {dispatch_id} by {current_user.id}")
    return None


@router.post("/{dispatch_id}/allocate", response_model=DispatchResponse)
async def allocate_dispatch(
    dispatch_id: str,
    allocate_data: DispatchAllocateRequest,
    current_user: TenantUser = Depends(require_permission("transportation_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Assign a driver and vehicle to a planned dispatch.

    Either may already be on the record; both must be set afterwards.
    """
    record = Dispatch.get_for_tenant(db, tenant.id, dispatch_id)
    if record.status != DispatchStatus.PLANNED.value:
        raise InvalidInputError(f"Only planned dispatches can be allocated, not {record.status}")

    driver_id = allocate_data.driver_id or record.driver_id
    vehicle_id = allocate_data.vehicle_id or record.vehicle_id
    if not driver_id or not vehicle_id:
        raise InvalidInputError("Driver and vehicle are required")

    # CRITICAL: Tenant isolation - driver and vehicle must be ours
    driver = Driver.get_for_tenant(db, tenant.id, driver_id)
    vehicle = Vehicle.get_for_tenant(db, tenant.id, vehicle_id)

    record.driver_id = driver.id
    record.vehicle_id = vehicle.id
    record.status = DispatchStatus.ALLOCATED.value
    record.allocated_at = datetime.utcnow()

    db.commit()
    db.refresh(record)

    logger.info(f"Dispatch allocated: {record.id} to driver {driver.id} by {current_user.id}")
    return record
