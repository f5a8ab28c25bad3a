"""
Stock allocation.

Reserves put-away LPNs against export container product lines and
outbound job lines. LPNs are chosen explicitly by id or, given a
quantity, oldest first from available stock of the same SKU and batch.
"""
import copy
from typing import Callable, Iterable, List, Optional

from sqlalchemy.orm import Session

from tms.config import get_settings
from tms.core.exceptions import InvalidInputError
from tms.models.container import ContainerStockAllocation, Direction
from tms.models.entities import SKU
from tms.models.tenant import Tenant
from tms.models.warehouse import (
    OutboundInventory,
    OutboundProductLine,
    OutboundStatus,
    PutAwayStock,
    StockStatus,
)
from tms.schemas.stock import AllocateItem, ItemError, OutboundAllocateItem
from tms.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def available_stock(
    db: Session,
    tenant: Tenant,
    sku_id: str,
    batch_number: Optional[str] = None,
) -> List[PutAwayStock]:
    """Available LPNs of a SKU, oldest first."""
    query = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.sku_id == sku_id,
        PutAwayStock.allocation_status == StockStatus.AVAILABLE.value,
        PutAwayStock.is_deleted == False
    )
    if batch_number:
        query = query.filter(PutAwayStock.batch_number == batch_number)
    return query.order_by(PutAwayStock.created_at, PutAwayStock.lpn_number).all()


def select_fifo(stock: Iterable[PutAwayStock], quantity: float) -> List[PutAwayStock]:
    """
    Take available LPNs in order until their hu_qty covers quantity.

    Records claimed earlier in the same session are skipped. Raises
    InvalidInputError when the stock runs out first.
    """
    chosen = []
    total = 0.0
    for record in stock:
        if record.allocation_status != StockStatus.AVAILABLE.value:
            continue
        if total >= quantity - settings.QUANTITY_TOLERANCE:
            break
        chosen.append(record)
        total += record.hu_qty or 0

    if total < quantity - settings.QUANTITY_TOLERANCE:
        raise InvalidInputError(f"Insufficient stock: need {quantity:g}, available {total:g}")
    return chosen


def resolve_lpns(
    db: Session,
    tenant: Tenant,
    sku_id: str,
    lpn_ids: List[str],
    held_here: Callable[[PutAwayStock], bool],
) -> List[PutAwayStock]:
    """
    Load explicitly chosen LPNs and check they can be allocated.

    held_here tells whether an already-allocated LPN belongs to the
    caller; such LPNs are returned but are not new allocations.
    """
    # Repeated ids count once
    lpn_ids = list(dict.fromkeys(lpn_ids))
    records = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == tenant.id,
        PutAwayStock.id.in_(lpn_ids),
        PutAwayStock.is_deleted == False
    ).all()
    found = {record.id: record for record in records}

    missing = [lpn_id for lpn_id in lpn_ids if lpn_id not in found]
    if missing:
        raise InvalidInputError(f"LPNs not found: {', '.join(missing)}")

    for record in records:
        if record.sku_id != sku_id:
            raise InvalidInputError(f"LPN {record.lpn_number} is not stock of this SKU")
        if record.allocation_status == StockStatus.AVAILABLE.value:
            continue
        if not held_here(record):
            raise InvalidInputError(f"LPN {record.lpn_number} is already allocated elsewhere")

    return [found[lpn_id] for lpn_id in lpn_ids]


def line_metrics(db: Session, tenant: Tenant, sku_id: str, quantity: float, weight_per_hu=None) -> dict:
    """Weight, pallet count and cubic metres per HU for an allocated quantity."""
    sku = db.query(SKU).filter(SKU.id == sku_id, SKU.tenant_id == tenant.id).first()
    metrics = {}
    if sku is None:
        return metrics

    weight = weight_per_hu or sku.weight_per_hu
    if weight:
        metrics["allocated_weight"] = round(float(weight) * quantity, 3)
    if sku.hu_per_su:
        metrics["plt_qty"] = round(quantity / sku.hu_per_su, 3)
    if sku.length_per_hu and sku.width_per_hu and sku.height_per_hu:
        # mm^3 -> m^3
        metrics["allocated_cubic_per_hu"] = round(
            sku.length_per_hu * sku.width_per_hu * sku.height_per_hu / 1e9, 6
        )
    return metrics


def _lpn_refs(records: Iterable[PutAwayStock]) -> List[dict]:
    return [{"lpn_id": record.id, "lpn_number": record.lpn_number} for record in records]


def _merge_lpns(existing: List[dict], records: Iterable[PutAwayStock]) -> List[dict]:
    merged = list(existing or [])
    seen = {ref.get("lpn_id") for ref in merged}
    for ref in _lpn_refs(records):
        if ref["lpn_id"] not in seen:
            merged.append(ref)
            seen.add(ref["lpn_id"])
    return merged


def _allocate_export_line(
    db: Session,
    tenant: Tenant,
    allocation: ContainerStockAllocation,
    lines: List[dict],
    item: AllocateItem,
) -> None:
    index = item.product_line_index
    if not 0 <= index < len(lines):
        raise InvalidInputError(f"Product line index {index} is out of range")
    if not item.batch_number:
        raise InvalidInputError("Batch number is required")

    line = lines[index]
    sku_id = line.get("sku_id")
    if not sku_id:
        raise InvalidInputError(f"Product line {index} has no SKU")

    expected = float(line.get("expected_qty") or 0)
    already = float(line.get("allocated_qty") or 0)
    if expected > 0 and already >= expected:
        raise InvalidInputError(f"Product line {index} is already fully allocated")

    held_ids = {ref.get("lpn_id") for ref in line.get("lpns") or []}
    if item.lpn_ids:
        records = resolve_lpns(
            db, tenant, sku_id, item.lpn_ids,
            lambda record: record.allocated_to_allocation_id == allocation.id
            and record.id in held_ids
        )
    else:
        need = expected - already if expected > 0 else (item.quantity or 0)
        quantity = min(item.quantity, need) if item.quantity else need
        if quantity <= 0:
            raise InvalidInputError("Either lpn_ids or quantity is required")
        records = select_fifo(available_stock(db, tenant, sku_id, item.batch_number), quantity)

    new_records = [r for r in records if r.allocation_status == StockStatus.AVAILABLE.value]
    for record in new_records:
        record.allocation_status = StockStatus.ALLOCATED.value
        record.allocated_to_allocation_id = allocation.id
        record.allocated_to_container_id = allocation.container_detail_id

    allocated_qty = already + sum(r.hu_qty or 0 for r in new_records)
    line["batch_number"] = item.batch_number
    line["allocated_qty"] = allocated_qty
    line["lpns"] = _merge_lpns(line.get("lpns"), records)
    locations = sorted({r.location for r in records if r.location})
    if locations:
        line["location"] = ", ".join(locations)
    line.update(line_metrics(db, tenant, sku_id, allocated_qty, line.get("weight_per_hu")))


def allocate_export_stock(
    db: Session,
    tenant: Tenant,
    allocation: ContainerStockAllocation,
    items: List[AllocateItem],
) -> List[ItemError]:
    """
    Allocate LPNs to the product lines of an export allocation.

    Failing items are returned as errors and leave their line untouched.
    Does not commit.
    """
    if allocation.direction != Direction.EXPORT:
        raise InvalidInputError("Stock can only be allocated to export containers")
    if not items:
        raise InvalidInputError("Allocation items are required")

    # Work on a copy so the JSON column sees a new value
    lines = copy.deepcopy(allocation.product_lines or [])
    errors: List[ItemError] = []

    for position, item in enumerate(items):
        try:
            _allocate_export_line(db, tenant, allocation, lines, item)
        except InvalidInputError as e:
            errors.append(ItemError(index=position, message=e.detail))

    allocation.product_lines = lines
    db.flush()

    logger.info(
        f"Allocated {len(items) - len(errors)}/{len(items)} items to allocation {allocation.id}",
        extra={"container_id": allocation.container_detail_id, "tenant_id": tenant.id}
    )
    return errors


def _allocate_outbound_line(
    db: Session,
    tenant: Tenant,
    job: OutboundInventory,
    line: OutboundProductLine,
    item: OutboundAllocateItem,
) -> None:
    if not line.sku_id:
        raise InvalidInputError(f"Product line {line.id} has no SKU")

    required = float(line.required_qty or 0)
    already = float(line.allocated_qty or 0)
    if required > 0 and already >= required:
        raise InvalidInputError(f"Product line {line.id} is already fully allocated")

    if item.lpn_ids:
        records = resolve_lpns(
            db, tenant, line.sku_id, item.lpn_ids,
            lambda record: record.allocated_to_outbound_line_id == line.id
        )
    else:
        need = required - already if required > 0 else (item.quantity or 0)
        quantity = min(item.quantity, need) if item.quantity else need
        if quantity <= 0:
            raise InvalidInputError("Either lpn_ids or quantity is required")
        records = select_fifo(
            available_stock(db, tenant, line.sku_id, item.batch_number or line.batch_number),
            quantity
        )

    new_records = [r for r in records if r.allocation_status == StockStatus.AVAILABLE.value]
    for record in new_records:
        record.allocation_status = StockStatus.ALLOCATED.value
        record.allocated_to_outbound_id = job.id
        record.allocated_to_outbound_line_id = line.id

    line.allocated_qty = already + sum(r.hu_qty or 0 for r in new_records)
    line.lpns = _merge_lpns(line.lpns, records)
    locations = sorted({r.location for r in records if r.location})
    if locations:
        line.location = ", ".join(locations)

    metrics = line_metrics(db, tenant, line.sku_id, line.allocated_qty)
    line.allocated_weight = metrics.get("allocated_weight", line.allocated_weight)
    line.plt_qty = metrics.get("plt_qty", line.plt_qty)
    line.allocated_cubic_per_hu = metrics.get("allocated_cubic_per_hu", line.allocated_cubic_per_hu)


def line_fully_allocated(line: OutboundProductLine) -> bool:
    required = float(line.required_qty or 0)
    allocated = float(line.allocated_qty or 0)
    if required > 0:
        return allocated >= required - settings.QUANTITY_TOLERANCE
    return allocated > 0


def allocate_outbound_stock(
    db: Session,
    tenant: Tenant,
    job: OutboundInventory,
    items: List[OutboundAllocateItem],
) -> List[ItemError]:
    """
    Allocate LPNs to outbound product lines and update the job status.

    Does not commit.
    """
    if not items:
        raise InvalidInputError("Allocation items are required")

    lines = {line.id: line for line in job.product_lines}
    errors: List[ItemError] = []

    for position, item in enumerate(items):
        line = lines.get(item.product_line_id)
        if line is None:
            errors.append(ItemError(index=position, message="Product line does not belong to this job"))
            continue
        try:
            _allocate_outbound_line(db, tenant, job, line, item)
        except InvalidInputError as e:
            errors.append(ItemError(index=position, message=e.detail))

    if job.product_lines:
        previous = job.status
        if all(line_fully_allocated(line) for line in job.product_lines):
            job.status = OutboundStatus.ALLOCATED.value
        else:
            job.status = OutboundStatus.PARTIALLY_ALLOCATED.value
        if job.status != previous:
            logger.info(f"Outbound job {job.job_code} status {previous} -> {job.status}")

    db.flush()
    logger.info(
        f"Allocated {len(items) - len(errors)}/{len(items)} items to outbound job {job.job_code}",
        extra={"job_id": job.id, "tenant_id": tenant.id}
    )
    return errors
