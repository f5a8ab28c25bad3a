"""
Container Stock Allocation Endpoints

Each allocation holds the product lines of one container. Import lines
record what is expected and received; export lines record what was
ordered and which LPNs were allocated to it.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional

from tms.database import get_db
from tms.models.container import AllocationStage, ContainerDetail, ContainerStockAllocation, Direction
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import PutAwayStock, StockStatus
from tms.schemas.container import (
    StockAllocationCreate,
    StockAllocationUpdate,
    StockAllocationResponse,
    StockAllocationListResponse,
    AllocateResult,
)
from tms.schemas.stock import AllocateRequest
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import InvalidInputError
from tms.services.allocation import allocate_export_stock
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/container-stock-allocations", tags=["container stock allocations"])

INITIAL_STAGE = {
    Direction.IMPORT: AllocationStage.EXPECTED.value,
    Direction.EXPORT: AllocationStage.ALLOCATED.value,
}

# Line fields maintained by allocation and pickup, not by clients
SYSTEM_LINE_FIELDS = ("allocated_qty", "allocated_weight", "allocated_cubic_per_hu", "plt_qty",
                      "picked_qty", "picked_weight", "lpns")


def _lines_from_request(product_lines, existing: Optional[list] = None) -> list:
    """
    JSON product lines from request data.

    Export lines keep their system-maintained fields from `existing`
    when a client resubmits them.
    """
    lines = [line.model_dump(mode="json") for line in product_lines]
    for index, line in enumerate(lines):
        previous = existing[index] if existing and index < len(existing) else {}
        for field in SYSTEM_LINE_FIELDS:
            if field in previous:
                line[field] = previous[field]
            elif field == "lpns":
                line[field] = []
            else:
                line[field] = None
    return lines


@router.get("", response_model=StockAllocationListResponse)
async def list_allocations(
    container_detail_id: Optional[str] = None,
    booking_id: Optional[str] = None,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("containers_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(ContainerStockAllocation).filter(ContainerStockAllocation.tenant_id == tenant.id)
    if container_detail_id:
        query = query.filter(ContainerStockAllocation.container_detail_id == container_detail_id)
    if booking_id:
        query = query.filter(ContainerStockAllocation.booking_id == booking_id)

    total, allocations = pagination.apply(query.order_by(ContainerStockAllocation.created_at))
    return StockAllocationListResponse(
        items=allocations, total=total, page=pagination.page, page_size=pagination.page_size
    )


@router.get("/{allocation_id}", response_model=StockAllocationResponse)
async def get_allocation(
    allocation_id: str,
    current_user: TenantUser = Depends(require_permission("containers_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return ContainerStockAllocation.get_for_tenant(db, tenant.id, allocation_id, "Stock allocation")


@router.post("", response_model=StockAllocationResponse, status_code=status.HTTP_201_CREATED)
async def create_allocation(
    allocation_data: StockAllocationCreate,
    current_user: TenantUser = Depends(require_permission("containers_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    container = ContainerDetail.get_for_tenant(db, tenant.id, allocation_data.container_detail_id, "Container")

    allocation = ContainerStockAllocation(
        tenant_id=tenant.id,
        container_detail_id=container.id,
        booking_id=container.booking_id,
        direction=container.direction,
        stage=INITIAL_STAGE[container.direction],
        product_lines=_lines_from_request(allocation_data.product_lines),
    )
    db.add(allocation)
    db.commit()
    db.refresh(allocation)

    logger.info(
        f"Stock allocation created: {allocation.id} for container {container.container_number} "
        f"by {current_user.id}",
        extra={"container_id": container.id}
    )
    return allocation


@router.patch("/{allocation_id}", response_model=StockAllocationResponse)
async def update_allocation(
    allocation_id: str,
    allocation_data: StockAllocationUpdate,
    current_user: TenantUser = Depends(require_permission("containers_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Replace the product lines, e.g. to record received quantities.

    Lines are matched to the stored ones by position, so a line that
    holds LPNs can neither be removed nor given another SKU.
    """
    allocation = ContainerStockAllocation.get_for_tenant(db, tenant.id, allocation_id, "Stock allocation")

    if allocation_data.product_lines is not None:
        existing = allocation.product_lines or []
        if len(allocation_data.product_lines) < len(existing) and any(
            line.get("lpns") for line in existing[len(allocation_data.product_lines):]
        ):
            raise InvalidInputError("Cannot remove product lines that hold allocated LPNs")
        for index, line in enumerate(allocation_data.product_lines[:len(existing)]):
            if existing[index].get("lpns") and line.sku_id != existing[index].get("sku_id"):
                raise InvalidInputError(f"Cannot change the SKU of product line {index} while it holds allocated LPNs")
        allocation.product_lines = _lines_from_request(allocation_data.product_lines, existing)

    db.commit()
    db.refresh(allocation)

    logger.info(f"Stock allocation updated: {allocation.id} by {current_user.id}")
    return allocation


@router.delete("/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_allocation(
    allocation_id: str,
    current_user: TenantUser = Depends(require_permission("containers_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Delete an allocation, releasing LPNs it holds that are not yet picked."""
    allocation = ContainerStockAllocation.get_for_tenant(db, tenant.id, allocation_id, "Stock allocation")

    if allocation.stage not in (AllocationStage.EXPECTED.value, AllocationStage.ALLOCATED.value):
        raise InvalidInputError(f"Cannot delete an allocation at stage {allocation.stage}")

    held = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.allocated_to_allocation_id == allocation.id
    ).all()
    if any(record.allocation_status != StockStatus.ALLOCATED.value for record in held):
        raise InvalidInputError("Allocation holds picked stock and cannot be deleted")
    for record in held:
        record.release()

    db.delete(allocation)
    db.commit()

    logger.info(f"Stock allocation deleted: {allocation_id} by {current_user.id}, released {len(held)} LPNs")
    return None


@router.post("/{allocation_id}/allocate", response_model=AllocateResult)
async def allocate(
    allocation_id: str,
    request_data: AllocateRequest,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Allocate put-away LPNs to export product lines.

    Each item names either lpn_ids or a quantity filled FIFO from the
    line's SKU and batch. Failed items are listed in errors.
    """
    allocation = ContainerStockAllocation.get_for_tenant(db, tenant.id, allocation_id, "Stock allocation")

    errors = allocate_export_stock(db, tenant, allocation, request_data.items)
    db.commit()
    db.refresh(allocation)

    logger.info(f"Stock allocated to {allocation.id} by {current_user.id}")
    return AllocateResult(allocation=allocation, errors=errors)
