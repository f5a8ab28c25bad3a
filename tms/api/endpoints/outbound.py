"""
Outbound Inventory Endpoints

Outbound jobs (OUT- codes) move through

    draft -> partially_allocated / allocated -> partially_picked -> picked
          -> ready_to_dispatch -> dispatched

Allocation reserves put-away LPNs against product lines, pickup is done
per product line, and dispatch creates the Dispatch record.

RBAC: freight_view / freight_create / freight_edit / freight_delete
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from tms.database import get_db
from tms.models.entities import SKU, Warehouse
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import (
    OutboundInventory,
    OutboundProductLine,
    OutboundStatus,
    PutAwayStock,
    StockStatus,
)
from tms.schemas.stock import (
    OutboundAllocateRequest,
    OutboundPickupRequest,
    OutboundDispatchRequest,
    PickupStockResponse,
    PutAwayStockResponse,
)
from tms.schemas.warehouse import (
    OutboundCreate,
    OutboundUpdate,
    OutboundResponse,
    OutboundListResponse,
    OutboundAllocateResult,
    OutboundProductLineCreate,
    OutboundProductLineUpdate,
    OutboundProductLineResponse,
    OutboundProductLineListResponse,
    PickupStatusResponse,
    DispatchResponse,
)
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import InvalidInputError
from tms.services import codes
from tms.services.allocation import allocate_outbound_stock, available_stock
from tms.services.pickup import (
    complete_outbound_pickup,
    dispatch_outbound,
    outbound_pickup_status,
    pickup_outbound_line,
)
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/outbound-inventory", tags=["outbound inventory"])
lines_router = APIRouter(prefix="/outbound-product-lines", tags=["outbound inventory"])


def _check_sku(db: Session, tenant: Tenant, values: dict) -> None:
    if values.get("sku_id"):
        SKU.get_for_tenant(db, tenant.id, values["sku_id"], "SKU")


def _release_line_stock(db: Session, tenant: Tenant, line_id: str) -> int:
    """Release LPNs allocated to a line. Picked or dispatched stock blocks it."""
    held = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.allocated_to_outbound_line_id == line_id
    ).all()
    if any(record.allocation_status != StockStatus.ALLOCATED.value for record in held):
        raise InvalidInputError("Product line holds picked stock and cannot be deleted")
    for record in held:
        record.release()
    return len(held)


@router.get("", response_model=OutboundListResponse)
async def list_outbound(
    status_filter: Optional[OutboundStatus] = Query(None, alias="status"),
    warehouse_id: Optional[str] = None,
    job_code: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(OutboundInventory).filter(OutboundInventory.tenant_id == tenant.id)
    if status_filter:
        query = query.filter(OutboundInventory.status == status_filter.value)
    if warehouse_id:
        query = query.filter(OutboundInventory.warehouse_id == warehouse_id)
    if job_code:
        query = query.filter(OutboundInventory.job_code.ilike(f"%{job_code}%"))

    total, jobs = pagination.apply(query.order_by(OutboundInventory.created_at.desc()))
    return OutboundListResponse(items=jobs, total=total, page=pagination.page, page_size=pagination.page_size)


@router.get("/{job_id}", response_model=OutboundResponse)
async def get_outbound(
    job_id: str,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")


@router.post("", response_model=OutboundResponse, status_code=status.HTTP_201_CREATED)
async def create_outbound(
    job_data: OutboundCreate,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Create a draft outbound job and its product lines."""
    values = job_data.model_dump(exclude={"product_lines"})
    if values.get("warehouse_id"):
        Warehouse.get_for_tenant(db, tenant.id, values["warehouse_id"])

    job = OutboundInventory(
        tenant_id=tenant.id,
        job_code=codes.generate_unique_job_code(db, tenant.id, codes.OUTBOUND_PREFIX),
        status=OutboundStatus.DRAFT.value,
        **values
    )
    for line_data in job_data.product_lines:
        line_values = line_data.model_dump()
        _check_sku(db, tenant, line_values)
        job.product_lines.append(OutboundProductLine(tenant_id=tenant.id, allocated_qty=0, lpns=[], **line_values))

    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(
        f"Outbound job created: {job.job_code} with {len(job.product_lines)} lines by {current_user.id}",
        extra={"job_id": job.id}
    )
    return job


@router.patch("/{job_id}", response_model=OutboundResponse)
async def update_outbound(
    job_id: str,
    job_data: OutboundUpdate,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")
    if job.status == OutboundStatus.DISPATCHED.value:
        raise InvalidInputError("Cannot edit a dispatched job")

    values = job_data.model_dump(exclude_unset=True)
    if values.get("warehouse_id"):
        Warehouse.get_for_tenant(db, tenant.id, values["warehouse_id"])
    for field, value in values.items():
        setattr(job, field, value)

    db.commit()
    db.refresh(job)

    logger.info(f"Outbound job updated: {job.job_code} by {current_user.id}")
    return job


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_outbound(
    job_id: str,
    current_user: TenantUser = Depends(require_permission("freight_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Delete a job that has not been picked, releasing its allocated LPNs."""
    job = OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")

    released = sum(_release_line_stock(db, tenant, line.id) for line in job.product_lines)
    job_code = job.job_code

    db.delete(job)
    db.commit()

    logger.info(f"Outbound job deleted: {job_code} by {current_user.id}, released {released} LPNs")
    return None


@router.post("/{job_id}/allocate", response_model=OutboundAllocateResult)
async def allocate(
    job_id: str,
    request_data: OutboundAllocateRequest,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Allocate LPNs to the job's product lines.

    Each item names lpn_ids or a quantity filled FIFO. Failed items are
    returned in errors; the rest are applied.
    """
    job = OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")
    if job.status in (OutboundStatus.READY_TO_DISPATCH.value, OutboundStatus.DISPATCHED.value):
        raise InvalidInputError(f"Cannot allocate stock to a job in status {job.status}")

    errors = allocate_outbound_stock(db, tenant, job, request_data.allocations)
    db.commit()
    db.refresh(job)

    logger.info(f"Outbound job allocated: {job.job_code} ({job.status}) by {current_user.id}")
    return OutboundAllocateResult(job=job, errors=errors)


@router.get("/{job_id}/available-stock", response_model=List[PutAwayStockResponse])
async def get_available_stock(
    job_id: str,
    sku_id: str,
    batch_number: Optional[str] = None,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Available LPNs of a SKU that could be allocated to this job, oldest first."""
    OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")
    SKU.get_for_tenant(db, tenant.id, sku_id, "SKU")
    return available_stock(db, tenant, sku_id, batch_number)


@router.post("/{job_id}/complete-pickup", response_model=OutboundResponse)
async def complete_pickup(
    job_id: str,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")

    complete_outbound_pickup(job)
    db.commit()
    db.refresh(job)

    logger.info(f"Outbound pickup completed: {job.job_code} by {current_user.id}")
    return job


@router.post("/{job_id}/dispatch", response_model=DispatchResponse, status_code=status.HTTP_201_CREATED)
async def dispatch(
    job_id: str,
    request_data: OutboundDispatchRequest,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")

    record = dispatch_outbound(
        db, tenant, current_user, job,
        vehicle_id=request_data.vehicle_id,
        driver_id=request_data.driver_id,
        dispatch_date=request_data.dispatch_date,
        dispatch_time=request_data.dispatch_time,
        notes=request_data.notes,
    )
    db.commit()
    db.refresh(record)

    logger.info(f"Outbound job dispatched: {job.job_code} as {record.id} by {current_user.id}")
    return record


@router.get("/{job_id}/pickup-status", response_model=PickupStatusResponse)
async def pickup_status(
    job_id: str,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = OutboundInventory.get_for_tenant(db, tenant.id, job_id, "Outbound job")
    return PickupStatusResponse(**outbound_pickup_status(db, job))


# Product lines

@lines_router.get("", response_model=OutboundProductLineListResponse)
async def list_outbound_lines(
    outbound_inventory_id: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(OutboundProductLine).filter(OutboundProductLine.tenant_id == tenant.id)
    if outbound_inventory_id:
        query = query.filter(OutboundProductLine.outbound_inventory_id == outbound_inventory_id)

    total, lines = pagination.apply(query.order_by(OutboundProductLine.created_at))
    return OutboundProductLineListResponse(
        items=lines, total=total, page=pagination.page, page_size=pagination.page_size
    )


@lines_router.get("/{line_id}", response_model=OutboundProductLineResponse)
async def get_outbound_line(
    line_id: str,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return OutboundProductLine.get_for_tenant(db, tenant.id, line_id, "Outbound product line")


@lines_router.post("", response_model=OutboundProductLineResponse, status_code=status.HTTP_201_CREATED)
async def create_outbound_line(
    line_data: OutboundProductLineCreate,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = OutboundInventory.get_for_tenant(db, tenant.id, line_data.outbound_inventory_id, "Outbound job")
    if job.status == OutboundStatus.DISPATCHED.value:
        raise InvalidInputError("Cannot add product lines to a dispatched job")

    values = line_data.model_dump(exclude={"outbound_inventory_id"})
    _check_sku(db, tenant, values)

    line = OutboundProductLine(
        tenant_id=tenant.id,
        outbound_inventory_id=job.id,
        allocated_qty=0,
        lpns=[],
        **values
    )
    db.add(line)
    db.commit()
    db.refresh(line)

    logger.info(f"Outbound product line created: {line.id} on {job.job_code} by {current_user.id}")
    return line


@lines_router.patch("/{line_id}", response_model=OutboundProductLineResponse)
async def update_outbound_line(
    line_id: str,
    line_data: OutboundProductLineUpdate,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """SKU and batch cannot change once LPNs are allocated to the line."""
    line = OutboundProductLine.get_for_tenant(db, tenant.id, line_id, "Outbound product line")

    values = line_data.model_dump(exclude_unset=True)
    if line.lpns and any(
        field in values and values[field] != getattr(line, field) for field in ("sku_id", "batch_number")
    ):
        raise InvalidInputError("Cannot change SKU or batch of a line with allocated LPNs")
    _check_sku(db, tenant, values)

    for field, value in values.items():
        setattr(line, field, value)

    db.commit()
    db.refresh(line)

    logger.info(f"Outbound product line updated: {line.id} by {current_user.id}")
    return line


@lines_router.delete("/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_outbound_line(
    line_id: str,
    current_user: TenantUser = Depends(require_permission("freight_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    line = OutboundProductLine.get_for_tenant(db, tenant.id, line_id, "Outbound product line")

    released = _release_line_stock(db, tenant, line.id)
    db.delete(line)
    db.commit()

    logger.info(f"Outbound product line deleted: {line_id} by {current_user.id}, released {released} LPNs")
    return None


@lines_router.post("/{line_id}/pickup", response_model=PickupStockResponse, status_code=status.HTTP_201_CREATED)
async def pickup(
    line_id: str,
    request_data: OutboundPickupRequest,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Pick allocated LPNs of one product line."""
    line = OutboundProductLine.get_for_tenant(db, tenant.id, line_id, "Outbound product line")

    record = pickup_outbound_line(
        db, tenant, current_user, line,
        request_data.lpn_ids,
        buffer_qty=request_data.buffer_qty,
        notes=request_data.notes,
        complete=request_data.complete,
    )
    db.commit()
    db.refresh(record)
    return record
