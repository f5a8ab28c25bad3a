"""
Put-away: turning received goods into located LPN stock.

Import containers put away against their stock allocations; inbound
jobs put away against their product lines. Both create PutAwayStock
rows, which are the only source of stock for later allocation.
"""
from typing import List, Optional

from sqlalchemy.orm import Session

from tms.config import get_settings
from tms.core.exceptions import ConflictError, InvalidInputError
from tms.models.container import (
    AllocationStage,
    ContainerDetail,
    ContainerStatus,
    ContainerStockAllocation,
    Direction,
)
from tms.models.entities import Warehouse
from tms.models.tenant import Tenant
from tms.models.warehouse import InboundInventory, InboundProductLine, PutAwayStock, StockStatus
from tms.schemas.stock import PutAwayRecordIn, ItemError
from tms.services import codes
from tms.services.container_status import set_container_status
from tms.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


def check_lpn_free(db: Session, tenant_id: str, lpn_number: str) -> None:
    """Raise ConflictError when the tenant already has this LPN, deleted or not."""
    exists = db.query(PutAwayStock.id).filter(
        PutAwayStock.tenant_id == tenant_id,
        PutAwayStock.lpn_number == lpn_number
    ).first()
    if exists:
        raise ConflictError(f"LPN {lpn_number} already exists")


def _match_allocation(container: ContainerDetail, record: PutAwayRecordIn) -> Optional[ContainerStockAllocation]:
    """The allocation whose line at record.product_line_index is for record.sku_id."""
    for allocation in container.allocations:
        lines = allocation.product_lines or []
        if 0 <= record.product_line_index < len(lines):
            if lines[record.product_line_index].get("sku_id") == record.sku_id:
                return allocation
    return None


def _put_away_total(db: Session, allocation: ContainerStockAllocation, index: int) -> float:
    records = db.query(PutAwayStock).filter(
        PutAwayStock.tenant_id == allocation.tenant_id,
        PutAwayStock.container_stock_allocation_id == allocation.id,
        PutAwayStock.product_line_index == index,
        PutAwayStock.is_deleted == False
    ).all()
    return sum(record.hu_qty or 0 for record in records)


def allocation_fully_put_away(db: Session, allocation: ContainerStockAllocation) -> bool:
    """
    Every received line has put-away stock covering its received quantity.

    Lines with nothing received are ignored; an allocation with no
    received lines is not put away.
    """
    received = [
        (index, line) for index, line in enumerate(allocation.product_lines or [])
        if (line.get("received_qty") or 0) > 0
    ]
    if not received:
        return False
    return all(
        _put_away_total(db, allocation, index) >= float(line["received_qty"]) - settings.QUANTITY_TOLERANCE
        for index, line in received
    )


def put_away_container(
    db: Session,
    tenant: Tenant,
    container: ContainerDetail,
    warehouse_id: Optional[str],
    records: List[PutAwayRecordIn],
):
    """
    Create put-away stock for an import container.

    Returns (created_records, errors). Records that match no allocation
    line are reported in errors and skipped. Does not commit.
    """
    if container.direction != Direction.IMPORT:
        raise InvalidInputError("Put-away is only available for import containers")

    if not warehouse_id or not records:
        raise InvalidInputError("Warehouse ID and put-away records are required")

    if container.status not in (ContainerStatus.RECEIVED.value, ContainerStatus.PUT_AWAY.value):
        raise InvalidInputError("Container must be received before put-away")

    warehouse = Warehouse.get_for_tenant(db, tenant.id, warehouse_id)

    created: List[PutAwayStock] = []
    errors: List[ItemError] = []
    touched = {}

    for position, record in enumerate(records):
        allocation = _match_allocation(container, record)
        if allocation is None:
            errors.append(ItemError(
                index=position,
                message=f"No allocation line for sku {record.sku_id} at index {record.product_line_index}",
            ))
            continue

        if record.lpn_number:
            try:
                check_lpn_free(db, tenant.id, record.lpn_number)
            except ConflictError as e:
                errors.append(ItemError(index=position, message=e.detail))
                continue

        line = allocation.product_lines[record.product_line_index]
        stock = PutAwayStock(
            tenant_id=tenant.id,
            lpn_number=record.lpn_number or codes.generate_unique_lpn(db, tenant.id),
            container_detail_id=container.id,
            container_stock_allocation_id=allocation.id,
            product_line_index=record.product_line_index,
            sku_id=record.sku_id,
            batch_number=line.get("batch_number"),
            warehouse_id=warehouse.id,
            location=record.location,
            hu_qty=record.hu_qty,
            allocation_status=StockStatus.AVAILABLE.value,
        )
        db.add(stock)
        # Flush so the next generated LPN sees this one
        db.flush()
        created.append(stock)
        touched[allocation.id] = allocation

    for allocation in touched.values():
        if allocation.stage != AllocationStage.PUT_AWAY.value and allocation_fully_put_away(db, allocation):
            logger.info(f"Allocation {allocation.id} stage {allocation.stage} -> put_away")
            allocation.stage = AllocationStage.PUT_AWAY.value

    if created and container.status == ContainerStatus.RECEIVED.value:
        set_container_status(db, container, ContainerStatus.PUT_AWAY.value)

    logger.info(
        f"Put away {len(created)}/{len(records)} records for container {container.container_number}",
        extra={"container_id": container.id, "tenant_id": tenant.id}
    )
    return created, errors


def create_inbound_put_away(
    db: Session,
    tenant: Tenant,
    job: InboundInventory,
    warehouse_id: Optional[str],
    records: List[PutAwayRecordIn],
) -> List[PutAwayStock]:
    """
    Create put-away stock for an inbound job.

    Every record must name a product line of this job, and explicit LPN
    numbers must be new. Does not commit.
    """
    if not warehouse_id or not records:
        raise InvalidInputError("Warehouse ID and put-away records are required")

    warehouse = Warehouse.get_for_tenant(db, tenant.id, warehouse_id)

    line_ids = {record.inbound_product_line_id for record in records}
    if None in line_ids:
        raise InvalidInputError("Each put-away record needs inbound_product_line_id")

    lines = {
        line.id: line for line in db.query(InboundProductLine).filter(
            InboundProductLine.id.in_(line_ids),
            InboundProductLine.tenant_id == tenant.id
        ).all()
    }
    for line_id in line_ids:
        line = lines.get(line_id)
        if line is None or line.inbound_inventory_id != job.id:
            raise InvalidInputError("Product line does not belong to this job")

    lpn_numbers = [record.lpn_number for record in records if record.lpn_number]
    if len(set(lpn_numbers)) != len(lpn_numbers):
        raise ConflictError("LPN numbers must be unique within a put-away")
    for lpn_number in lpn_numbers:
        check_lpn_free(db, tenant.id, lpn_number)

    created = []
    for record in records:
        line = lines[record.inbound_product_line_id]
        sku_id = record.sku_id or line.sku_id
        if not sku_id:
            raise InvalidInputError(f"SKU ID not found for product line {line.id}")

        stock = PutAwayStock(
            tenant_id=tenant.id,
            lpn_number=record.lpn_number or codes.generate_unique_lpn(db, tenant.id),
            inbound_inventory_id=job.id,
            inbound_product_line_id=line.id,
            sku_id=sku_id,
            batch_number=line.batch_number,
            warehouse_id=warehouse.id,
            location=record.location,
            hu_qty=record.hu_qty,
            allocation_status=StockStatus.AVAILABLE.value,
        )
        db.add(stock)
        db.flush()
        created.append(stock)

    logger.info(
        f"Put away {len(created)} records for inbound job {job.job_code}",
        extra={"job_id": job.id, "tenant_id": tenant.id}
    )
    return created
