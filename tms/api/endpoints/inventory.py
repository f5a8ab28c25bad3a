"""
Inventory Endpoints

Views over put-away stock per SKU, batch and location, plus the bulk
corrections staff make to received inbound lines.

RBAC: inventory_view / inventory_edit
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from tms.database import get_db
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import StockStatus
from tms.schemas.stock import (
    InventoryResponse,
    InventoryRow,
    PutAwayStockResponse,
    WarehouseBatch,
    WarehouseBatchList,
    WarehouseLocationList,
    BatchRenumberRequest,
    ReceivedQuantityRequest,
    InventoryUpdateResult,
)
from tms.api.deps import get_current_tenant, require_permission
from tms.services.inventory import (
    renumber_batch,
    search_inventory,
    set_received_quantity,
    summarize_inventory,
    warehouse_batches,
    warehouse_locations,
)
from tms.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("", response_model=InventoryResponse)
async def get_inventory(
    warehouse_id: Optional[str] = None,
    sku_id: Optional[str] = None,
    batch_number: Optional[str] = None,
    allocation_status: Optional[StockStatus] = None,
    current_user: TenantUser = Depends(require_permission("inventory_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Stock totals per SKU and batch."""
    rows = summarize_inventory(
        db, tenant,
        warehouse_id=warehouse_id,
        sku_id=sku_id,
        batch_number=batch_number,
        allocation_status=allocation_status.value if allocation_status else None,
    )
    return InventoryResponse(items=[InventoryRow(**row) for row in rows], total=len(rows))


@router.get("/search", response_model=List[PutAwayStockResponse])
async def search(
    q: str = Query(..., min_length=1),
    limit: int = Query(100, ge=1, le=500),
    current_user: TenantUser = Depends(require_permission("inventory_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return search_inventory(db, tenant, q, limit=limit)


@router.get("/locations", response_model=WarehouseLocationList)
async def list_locations(
    warehouse_id: str,
    current_user: TenantUser = Depends(require_permission("inventory_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return WarehouseLocationList(locations=warehouse_locations(db, tenant, warehouse_id))


@router.get("/batches", response_model=WarehouseBatchList)
async def list_batches(
    warehouse_id: str,
    current_user: TenantUser = Depends(require_permission("inventory_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Batches received and put away in a warehouse, one entry per batch number."""
    batches = warehouse_batches(db, tenant, warehouse_id)
    return WarehouseBatchList(batches=[WarehouseBatch(**batch) for batch in batches])


@router.put("/batch", response_model=InventoryUpdateResult)
async def update_batch_number(
    data: BatchRenumberRequest,
    current_user: TenantUser = Depends(require_permission("inventory_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    lines, lpns = renumber_batch(db, tenant, data.sku_id, data.old_batch_number, data.new_batch_number)
    db.commit()

    logger.info(f"Batch renumbered: {data.old_batch_number} -> {data.new_batch_number} by {current_user.id}")
    return InventoryUpdateResult(
        updated_lines=lines,
        updated_lpns=lpns,
        message=f"Updated batch number for {lines} product line(s)",
    )


@router.put("/quantity", response_model=InventoryUpdateResult)
async def update_received_quantity(
    data: ReceivedQuantityRequest,
    current_user: TenantUser = Depends(require_permission("inventory_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Set the received quantity on every inbound line of a SKU."""
    lines = set_received_quantity(db, tenant, data.sku_id, data.received_qty)
    db.commit()

    logger.info(f"Received quantity updated for sku {data.sku_id} by {current_user.id}")
    return InventoryUpdateResult(
        updated_lines=lines,
        message=f"Updated received quantity for {lines} product line(s)",
    )
