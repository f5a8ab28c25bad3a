"""
Put-away and Pickup Stock Endpoints

/put-away-stock is the LPN ledger: every located pallet or carton with
its allocation status. /pickup-stock lists the pickups made against
allocated LPNs.

RBAC: freight_view / freight_create / freight_edit / freight_delete
"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import Optional

from tms.database import get_db
from tms.models.entities import SKU, Warehouse
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.models.warehouse import PickupStock, PutAwayStock, StockStatus
from tms.schemas.stock import (
    PutAwayStockCreate,
    PutAwayStockUpdate,
    PutAwayStockResponse,
    PutAwayStockListResponse,
    GenerateLPNsRequest,
    GenerateLPNsResponse,
    PickupStockUpdate,
    PickupStockResponse,
    PickupStockListResponse,
)
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import InvalidInputError
from tms.services import codes
from tms.services.put_away import check_lpn_free
from tms.services.pickup import delete_pickup_stock, update_pickup_stock
from tms.utils.logging import get_logger

logger = get_logger(__name__)

put_away_router = APIRouter(prefix="/put-away-stock", tags=["put-away stock"])
pickup_router = APIRouter(prefix="/pickup-stock", tags=["pickup stock"])


@put_away_router.get("", response_model=PutAwayStockListResponse)
async def list_put_away_stock(
    sku_id: Optional[str] = None,
    warehouse_id: Optional[str] = None,
    batch_number: Optional[str] = None,
    allocation_status: Optional[str] = None,
    container_detail_id: Optional[str] = None,
    inbound_inventory_id: Optional[str] = None,
    include_deleted: bool = False,
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(PutAwayStock).filter(PutAwayStock.tenant_id == tenant.id)

    if not include_deleted:
        query = query.filter(PutAwayStock.is_deleted == False)
    if sku_id:
        query = query.filter(PutAwayStock.sku_id == sku_id)
    if warehouse_id:
        query = query.filter(PutAwayStock.warehouse_id == warehouse_id)
    if batch_number:
        query = query.filter(PutAwayStock.batch_number == batch_number)
    if allocation_status:
        query = query.filter(PutAwayStock.allocation_status == allocation_status)
    if container_detail_id:
        query = query.filter(PutAwayStock.container_detail_id == container_detail_id)
    if inbound_inventory_id:
        query = query.filter(PutAwayStock.inbound_inventory_id == inbound_inventory_id)

    total, records = pagination.apply(query.order_by(PutAwayStock.created_at))
    return PutAwayStockListResponse(
        items=records, total=total, page=pagination.page, page_size=pagination.page_size
    )


@put_away_router.post("/generate-lpns", response_model=GenerateLPNsResponse)
async def generate_lpns(
    request_data: GenerateLPNsRequest,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Generate unused LPN numbers for labels.

    Numbers are not reserved; a later put-away may still collide and
    get a 409.
    """
    numbers = []
    while len(numbers) < request_data.count:
        number = codes.generate_unique_lpn(db, tenant.id)
        if number not in numbers:
            numbers.append(number)
    return GenerateLPNsResponse(lpn_numbers=numbers)


@put_away_router.get("/{record_id}", response_model=PutAwayStockResponse)
async def get_put_away_stock(
    record_id: str,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return PutAwayStock.get_for_tenant(db, tenant.id, record_id, "Put-away stock")


@put_away_router.post("", response_model=PutAwayStockResponse, status_code=status.HTTP_201_CREATED)
async def create_put_away_stock(
    stock_data: PutAwayStockCreate,
    current_user: TenantUser = Depends(require_permission("freight_create")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Put away an LPN that did not arrive through an inbound job or container."""
    SKU.get_for_tenant(db, tenant.id, stock_data.sku_id, "SKU")
    Warehouse.get_for_tenant(db, tenant.id, stock_data.warehouse_id)

    if stock_data.lpn_number:
        check_lpn_free(db, tenant.id, stock_data.lpn_number)

    record = PutAwayStock(
        tenant_id=tenant.id,
        lpn_number=stock_data.lpn_number or codes.generate_unique_lpn(db, tenant.id),
        sku_id=stock_data.sku_id,
        warehouse_id=stock_data.warehouse_id,
        batch_number=stock_data.batch_number,
        location=stock_data.location,
        hu_qty=stock_data.hu_qty,
        allocation_status=StockStatus.AVAILABLE.value,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    logger.info(f"Put-away stock created: {record.lpn_number} by {current_user.id}")
    return record


@put_away_router.patch("/{record_id}", response_model=PutAwayStockResponse)
async def update_put_away_stock(
    record_id: str,
    stock_data: PutAwayStockUpdate,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """
    Move or correct an LPN.

    Quantity changes are only allowed while the LPN is available.
    """
    record = PutAwayStock.get_for_tenant(db, tenant.id, record_id, "Put-away stock")
    if record.is_deleted:
        raise InvalidInputError("Put-away stock has been deleted")

    values = stock_data.model_dump(exclude_unset=True)
    if "hu_qty" in values and record.allocation_status != StockStatus.AVAILABLE.value:
        raise InvalidInputError(f"Cannot change quantity of {record.allocation_status} stock")
    if values.get("warehouse_id"):
        Warehouse.get_for_tenant(db, tenant.id, values["warehouse_id"])

    for field, value in values.items():
        setattr(record, field, value)

    db.commit()
    db.refresh(record)

    logger.info(f"Put-away stock updated: {record.lpn_number} by {current_user.id}")
    return record


@put_away_router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_put_away_stock(
    record_id: str,
    current_user: TenantUser = Depends(require_permission("freight_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Soft delete an available LPN."""
    record = PutAwayStock.get_for_tenant(db, tenant.id, record_id, "Put-away stock")

    if record.allocation_status != StockStatus.AVAILABLE.value:
        raise InvalidInputError(f"Cannot delete {record.allocation_status} stock")

    record.soft_delete()
    db.commit()

    logger.info(f"Put-away stock soft deleted: {record.lpn_number} by {current_user.id}")
    return None


@pickup_router.get("", response_model=PickupStockListResponse)
async def list_pickup_stock(
    outbound_inventory_id: Optional[str] = None,
    container_detail_id: Optional[str] = None,
    pickup_status: Optional[str] = Query(None, pattern="^(draft|completed|cancelled)$"),
    pagination: Pagination = Depends(),
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    query = db.query(PickupStock).filter(PickupStock.tenant_id == tenant.id)

    if outbound_inventory_id:
        query = query.filter(PickupStock.outbound_inventory_id == outbound_inventory_id)
    if container_detail_id:
        query = query.filter(PickupStock.container_detail_id == container_detail_id)
    if pickup_status:
        query = query.filter(PickupStock.pickup_status == pickup_status)

    total, records = pagination.apply(query.order_by(PickupStock.created_at.desc()))
    return PickupStockListResponse(
        items=records, total=total, page=pagination.page, page_size=pagination.page_size
    )


@pickup_router.get("/{pickup_id}", response_model=PickupStockResponse)
async def get_pickup_stock(
    pickup_id: str,
    current_user: TenantUser = Depends(require_permission("freight_view")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return PickupStock.get_for_tenant(db, tenant.id, pickup_id, "Pickup stock")


@pickup_router.patch("/{pickup_id}", response_model=PickupStockResponse)
async def update_pickup(
    pickup_id: str,
    pickup_data: PickupStockUpdate,
    current_user: TenantUser = Depends(require_permission("freight_edit")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    pickup = PickupStock.get_for_tenant(db, tenant.id, pickup_id, "Pickup stock")

    update_pickup_stock(db, pickup, pickup_data.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(pickup)

    logger.info(f"Pickup stock updated: {pickup.id} by {current_user.id}")
    return pickup


@pickup_router.delete("/{pickup_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_pickup(
    pickup_id: str,
    current_user: TenantUser = Depends(require_permission("freight_delete")),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    """Delete a draft pickup; its LPNs go back to allocated."""
    pickup = PickupStock.get_for_tenant(db, tenant.id, pickup_id, "Pickup stock")

    reverted = delete_pickup_stock(db, pickup)
    db.commit()

    logger.info(f"Pickup stock deleted: {pickup_id} by {current_user.id}, reverted {reverted} LPNs")
    return None
