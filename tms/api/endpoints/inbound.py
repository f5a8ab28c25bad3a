"""
Inbound Inventory Endpoints

Inbound jobs (INB- codes) with their product lines. Receiving writes the
received quantities onto the lines; put-away also records where each LPN
was stored.

RBAC: freight_view / freight_create / freight_edit / freight_delete
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional

from tms.database import get_db
from tms.models.entities import Customer, SKU, TransportCompany, Warehouse
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import InboundInventory, InboundProductLine
from tms.schemas.warehouse import (
    InboundCreate,
    InboundUpdate,
    InboundResponse,
    InboundListResponse,
    InboundReceiveRequest,
    InboundPutAwayRequest,
    InboundPutAwayResponse,
    InboundProductLineCreate,
    InboundProductLineUpdate,
    InboundProductLineResponse,
    InboundProductLineListResponse,
)
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import InvalidInputError
from tms.services import codes
from tms.services.put_away import create_inbound_put_away
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/inbound-inventory", tags=["inbound inventory"])
lines_router = APIRouter(prefix="/inbound-product-lines", tags=["inbound inventory"])


def _check_references(db: Session, tenant: Tenant, values: dict) -> None:
    if values.get("warehouse_id"):
        Warehouse.get_for_tenant(db, tenant.id, values["warehouse_id"])
    if values.get("delivery_customer_id"):
        Customer.get_for_tenant(db, tenant.id, values["delivery_customer_id"])
    if values.get("transport_company_id"):
        TransportCompany.get_for_tenant(db, tenant.id, values["transport_company_id"])


def _check_sku(db: Session, tenant: Tenant, values: dict) -> None:
    if values.get("sku_id"):
        SKU.get_for_tenant(db, tenant.id, values["sku_id"], "SKU")


def _apply_received(db: Session, tenant: Tenant, job: InboundInventory, data: InboundReceiveRequest) -> None:
    """Set completed_date and write received figures onto the job's lines."""
    lines = {line.id: line for line in job.product_lines}
    for received in data.product_lines:
        line = lines.get(received.id)
        if line is None:
            raise InvalidInputError(f"Product line {received.id} does not belong to this job")
        for field, value in received.model_dump(exclude={"id"}, exclude_unset=True).items():
            setattr(line, field, value)

    job.completed_date = data.completed_date or datetime.utcnow()


@router.get("", response_model=InboundListResponse)
async def list_inbound(
    warehouse_id: Optional[str] = None,
    job_code: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(InboundInventory).filter(InboundInventory.tenant_id == tenant.id)
    if warehouse_id:
        query = query.filter(InboundInventory.warehouse_id == warehouse_id)
    if job_code:
        query = query.filter(InboundInventory.job_code.ilike(f"%{job_code}%"))

    total, jobs = pagination.apply(query.order_by(InboundInventory.created_at.desc()))
    return InboundListResponse(items=jobs, total=total, page=pagination.page, page_size=pagination.page_size)


@router.get("/{job_id}", response_model=InboundResponse)
async def get_inbound(
    job_id: str,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return InboundInventory.get_for_tenant(db, tenant.id, job_id, "Inbound job")


@router.post("", response_model=InboundResponse, status_code=status.HTTP_201_CREATED)
async def create_inbound(
    job_data: InboundCreate,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Create an inbound job and its product lines. The job code is generated."""
    values = job_data.model_dump(exclude={"product_lines"})
    _check_references(db, tenant, values)

    job = InboundInventory(
        tenant_id=tenant.id,
        job_code=codes.generate_unique_job_code(db, tenant.id, codes.INBOUND_PREFIX),
        **values
    )
    for line_data in job_data.product_lines:
        line_values = line_data.model_dump()
        _check_sku(db, tenant, line_values)
        job.product_lines.append(InboundProductLine(tenant_id=tenant.id, **line_values))

    db.add(job)
    db.commit()
    db.refresh(job)

    logger.info(
        f"Inbound job created: {job.job_code} with {len(job.product_lines)} lines by {current_user.id}",
        extra={"job_id": job.id}
    )
    return job


@router.patch("/{job_id}", response_model=InboundResponse)
async def update_inbound(
    job_id: str,
    job_data: InboundUpdate,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = InboundInventory.get_for_tenant(db, tenant.id, job_id, "Inbound job")

    values = job_data.model_dump(exclude_unset=True)
    _check_references(db, tenant, values)
    for field, value in values.items():
        setattr(job, field, value)

    db.commit()
    db.refresh(job)

    logger.info(f"Inbound job updated: {job.job_code} by {current_user.id}")
    return job


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inbound(
    job_id: str,
    current_user: TenantUser = Depends(require_permission("freight_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    job = InboundInventory.get_for_tenant(db, tenant.id, job_id, "Inbound job")
    job_code = job.job_code

    db.delete(job)
    db.commit()

    logger.info(f"Inbound job deleted: {job_code} by {current_user.id}")
    return None


@router.post("/{job_id}/receive", response_model=InboundResponse)
async def receive_inbound(
    job_id: str,
    receive_data: InboundReceiveRequest,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Record received quantities and mark the job completed."""
    job = InboundInventory.get_for_tenant(db, tenant.id, job_id, "Inbound job")

    _apply_received(db, tenant, job, receive_data)
    db.commit()
    db.refresh(job)

    logger.info(f"Inbound job received: {job.job_code} by {current_user.id}")
    return job


@router.post("/{job_id}/put-away", response_model=InboundPutAwayResponse)
async def put_away_inbound(
    job_id: str,
    put_away_data: InboundPutAwayRequest,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Receive the job and put its stock away.

    Put-away records are created only when warehouse_id and
    put_away_records are both supplied.
    """
    job = InboundInventory.get_for_tenant(db, tenant.id, job_id, "Inbound job")

    _apply_received(db, tenant, job, put_away_data)

    created = []
    if put_away_data.warehouse_id and put_away_data.put_away_records:
        created = create_inbound_put_away(
            db, tenant, job, put_away_data.warehouse_id, put_away_data.put_away_records
        )

    db.commit()
    db.refresh(job)
    for record in created:
        db.refresh(record)

    logger.info(
        f"Inbound job put away: {job.job_code}, {len(created)} records by {current_user.id}",
        extra={"job_id": job.id}
    )
    return InboundPutAwayResponse(job=job, put_away_records=created)


# Product lines

@lines_router.get("", response_model=InboundProductLineListResponse)
async def list_inbound_lines(
    inbound_inventory_id: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(InboundProductLine).filter(InboundProductLine.tenant_id == tenant.id)
    if inbound_inventory_id:
        query = query.filter(InboundProductLine.inbound_inventory_id == inbound_inventory_id)

    total, lines = pagination.apply(query.order_by(InboundProductLine.created_at))
    return InboundProductLineListResponse(
        items=lines, total=total, page=pagination.page, page_size=pagination.page_size
    )


@lines_router.get("/{line_id}", response_model=InboundProductLineResponse)
async def get_inbound_line(
    line_id: str,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return InboundProductLine.get_for_tenant(db, tenant.id, line_id, "Inbound product line")


@lines_router.post("", response_model=InboundProductLineResponse, status_code=status.HTTP_201_CREATED)
async def create_inbound_line(
    line_data: InboundProductLineCreate,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    # CRITICAL: Tenant isolation - the job must belong to the caller's tenant
    job = InboundInventory.get_for_tenant(db, tenant.id, line_data.inbound_inventory_id, "Inbound job")

    values = line_data.model_dump(exclude={"inbound_inventory_id"})
    _check_sku(db, tenant, values)

    line = InboundProductLine(tenant_id=tenant.id, inbound_inventory_id=job.id, **values)
    db.add(line)
    db.commit()
    db.refresh(line)

    logger.info(f"Inbound product line created: {line.id} on {job.job_code} by {current_user.id}")
    return line


@lines_router.patch("/{line_id}", response_model=InboundProductLineResponse)
async def update_inbound_line(
    line_id: str,
    line_data: InboundProductLineUpdate,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    line = InboundProductLine.get_for_tenant(db, tenant.id, line_id, "Inbound product line")

    values = line_data.model_dump(exclude_unset=True)
    _check_sku(db, tenant, values)
    for field, value in values.items():
        setattr(line, field, value)

    db.commit()
    db.refresh(line)

    logger.info(f"Inbound product line updated: {line.id} by {current_user.id}")
    return line


@lines_router.delete("/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inbound_line(
    line_id: str,
    current_user: TenantUser = Depends(require_permission("freight_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    line = InboundProductLine.get_for_tenant(db, tenant.id, line_id, "Inbound product line")
    db.delete(line)
    db.commit()

    logger.info(f"Inbound product line deleted: {line_id} by {current_user.id}")
    return None
