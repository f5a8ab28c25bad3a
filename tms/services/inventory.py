"""
Inventory views over put-away stock, and the corrections warehouse
staff make to received inbound lines.
"""
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from tms.core.exceptions import NotFoundError
from tms.models.entities import SKU, Warehouse
from tms.models.tenant import Tenant
from tms.models.warehouse import InboundInventory, InboundProductLine, PutAwayStock, StockStatus
from tms.utils.logging import get_logger

logger = get_logger(__name__)

STATUS_TOTALS = {
    StockStatus.AVAILABLE.value: "available_qty",
    StockStatus.RESERVED.value: "reserved_qty",
    StockStatus.ALLOCATED.value: "allocated_qty",
    StockStatus.PICKED.value: "picked_qty",
    StockStatus.DISPATCHED.value: "dispatched_qty",
}


def _stock_query(db: Session, tenant: Tenant):
    return db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.is_deleted == False
    )


def summarize_inventory(
    db: Session,
    tenant: Tenant,
    warehouse_id: Optional[str] = None,
    sku_id: Optional[str] = None,
    batch_number: Optional[str] = None,
    allocation_status: Optional[str] = None,
) -> List[dict]:
    """
    Stock totals per (sku_id, batch_number).

    Rows are ordered by SKU then batch. Quantities are summed hu_qty.
    """
    query = _stock_query(db, tenant)
    if warehouse_id:
        query = query.filter(PutAwayStock.warehouse_id == warehouse_id)
    if sku_id:
        query = query.filter(PutAwayStock.sku_id == sku_id)
    if batch_number:
        query = query.filter(PutAwayStock.batch_number == batch_number)
    if allocation_status:
        query = query.filter(PutAwayStock.allocation_status == allocation_status)

    groups = {}
    for record in query.all():
        key = (record.sku_id, record.batch_number)
        row = groups.get(key)
        if row is None:
            row = {
                "sku_id": record.sku_id,
                "batch_number": record.batch_number,
                "total_qty": 0.0,
                "lpn_count": 0,
                "locations": set(),
            }
            row.update({field: 0.0 for field in STATUS_TOTALS.values()})
            groups[key] = row

        qty = record.hu_qty or 0
        row["total_qty"] += qty
        row["lpn_count"] += 1
        status_field = STATUS_TOTALS.get(record.allocation_status)
        if status_field:
            row[status_field] += qty
        if record.location:
            row["locations"].add(record.location)

    rows = []
    for key in sorted(groups, key=lambda k: (k[0] or "", k[1] or "")):
        row = groups[key]
        row["locations"] = sorted(row["locations"])
        rows.append(row)
    return rows


def search_inventory(db: Session, tenant: Tenant, q: str, limit: int = 100) -> List[PutAwayStock]:
    """Put-away stock whose LPN, location or batch contains q (case-insensitive)."""
    pattern = f"%{q.strip()}%"
    return _stock_query(db, tenant).filter(
        or_(
            PutAwayStock.lpn_number.ilike(pattern),
            PutAwayStock.location.ilike(pattern),
            PutAwayStock.batch_number.ilike(pattern),
        )
    ).order_by(PutAwayStock.lpn_number).limit(limit).all()


def warehouse_locations(db: Session, tenant: Tenant, warehouse_id: str) -> List[str]:
    """Distinct locations holding stock in a warehouse, sorted."""
    warehouse = Warehouse.get_for_tenant(db, tenant.id, warehouse_id)
    rows = _stock_query(db, tenant).filter(
        PutAwayStock.warehouse_id == warehouse.id,
        PutAwayStock.location.isnot(None)
    ).with_entities(PutAwayStock.location).distinct().all()
    return sorted(location for (location,) in rows if location)


def warehouse_batches(db: Session, tenant: Tenant, warehouse_id: str) -> List[dict]:
    """
    Batches received into a warehouse and put away.

    A batch counts when a line of a completed inbound job for the
    warehouse has a received quantity and at least one put-away LPN.
    The first such line names the SKU of each batch.
    """
    warehouse = Warehouse.get_for_tenant(db, tenant.id, warehouse_id)

    lines = db.query(InboundProductLine).join(
        InboundInventory, InboundProductLine.inbound_inventory_id == InboundInventory.id
    ).filter(
        InboundInventory.tenant_id == tenant.id,
        InboundInventory.warehouse_id == warehouse.id,
        InboundInventory.completed_date.isnot(None),
        InboundProductLine.batch_number.isnot(None),
        InboundProductLine.received_qty > 0
    ).order_by(InboundProductLine.created_at).all()
    if not lines:
        return []

    put_away_line_ids = {
        line_id for (line_id,) in db.query(PutAwayStock.inbound_product_line_id).filter(
            PutAwayStock.tenant_id == tenant.id,
            PutAwayStock.inbound_product_line_id.in_([line.id for line in lines])
        ).distinct()
    }

    batches = {}
    for line in lines:
        if line.id in put_away_line_ids and line.batch_number not in batches:
            batches[line.batch_number] = {
                "batch_number": line.batch_number,
                "sku_id": line.sku_id,
                "sku_description": line.sku_description,
            }
    return list(batches.values())


def _inbound_lines_of_sku(db: Session, tenant: Tenant, sku_id: str):
    sku = SKU.get_for_tenant(db, tenant.id, sku_id, "SKU")
    return db.query(InboundProductLine).filter(
        InboundProductLine.tenant_id == tenant.id,
        InboundProductLine.sku_id == sku.id
    )


def renumber_batch(db: Session, tenant: Tenant, sku_id: str, old_batch: str, new_batch: str):
    """
    Rename a batch of a SKU on its inbound lines and their put-away LPNs.

    Returns (lines_updated, lpns_updated). Raises NotFoundError when no
    inbound line of the SKU carries old_batch. Does not commit.
    """
    lines = _inbound_lines_of_sku(db, tenant, sku_id).filter(
        InboundProductLine.batch_number == old_batch
    ).all()
    if not lines:
        raise NotFoundError("Inbound product lines with batch", old_batch)

    for line in lines:
        line.batch_number = new_batch

    lpns = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.inbound_product_line_id.in_([line.id for line in lines]),
        PutAwayStock.batch_number == old_batch
    ).all()
    for record in lpns:
        record.batch_number = new_batch

    db.flush()
    logger.info(
        f"Batch {old_batch} -> {new_batch} for sku {sku_id}: {len(lines)} lines, {len(lpns)} LPNs",
        extra={"tenant_id": tenant.id}
    )
    return len(lines), len(lpns)


def set_received_quantity(db: Session, tenant: Tenant, sku_id: str, received_qty: float) -> int:
    """Overwrite received_qty on every inbound line of a SKU. Does not commit."""
    lines = _inbound_lines_of_sku(db, tenant, sku_id).all()
    for line in lines:
        line.received_qty = received_qty

    db.flush()
    logger.info(
        f"Received quantity of sku {sku_id} set to {received_qty:g} on {len(lines)} lines",
        extra={"tenant_id": tenant.id}
    )
    return len(lines)
