"""
Stock Schemas

Request/response models for put-away, allocation, pickup and inventory.
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime, date


class ItemError(BaseModel):
    """A failed item of a multi-item request, by its position in the request."""
    index: int
    message: str


class LPNRef(BaseModel):
    lpn_id: str
    lpn_number: str
    hu_qty: Optional[float] = None
    location: Optional[str] = None


# Put-away

class PutAwayRecordIn(BaseModel):
    """
    One LPN to put away.

    Container put-away matches sku_id and product_line_index against the
    container's allocations; inbound put-away uses inbound_product_line_id.
    """
    sku_id: Optional[str] = None
    product_line_index: int = Field(0, ge=0)
    inbound_product_line_id: Optional[str] = None
    lpn_number: Optional[str] = Field(None, max_length=30)
    location: Optional[str] = Field(None, max_length=100)
    hu_qty: float = Field(..., gt=0)


class PutAwayRequest(BaseModel):
    warehouse_id: Optional[str] = None
    records: List[PutAwayRecordIn] = []


class PutAwayStockCreate(BaseModel):
    """Manual put-away of an LPN not tied to a job."""
    sku_id: str
    warehouse_id: str
    lpn_number: Optional[str] = Field(None, max_length=30)
    batch_number: Optional[str] = None
    location: Optional[str] = None
    hu_qty: float = Field(..., gt=0)


class PutAwayStockUpdate(BaseModel):
    """Schema for updating put-away stock. All fields optional."""
    location: Optional[str] = None
    batch_number: Optional[str] = None
    hu_qty: Optional[float] = Field(None, gt=0)
    warehouse_id: Optional[str] = None


class PutAwayStockResponse(BaseModel):
    id: str
    tenant_id: str
    lpn_number: str
    inbound_inventory_id: Optional[str] = None
    inbound_product_line_id: Optional[str] = None
    container_detail_id: Optional[str] = None
    container_stock_allocation_id: Optional[str] = None
    product_line_index: Optional[int] = None
    sku_id: Optional[str] = None
    batch_number: Optional[str] = None
    warehouse_id: Optional[str] = None
    location: Optional[str] = None
    hu_qty: float
    allocation_status: str
    allocated_to_container_id: Optional[str] = None
    allocated_to_allocation_id: Optional[str] = None
    allocated_to_outbound_id: Optional[str] = None
    allocated_to_outbound_line_id: Optional[str] = None
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PutAwayStockListResponse(BaseModel):
    items: list[PutAwayStockResponse]
    total: int
    page: int
    page_size: int


class PutAwayResult(BaseModel):
    created: list[PutAwayStockResponse]
    errors: list[ItemError] = []


class GenerateLPNsRequest(BaseModel):
    count: int = Field(1, ge=1, le=100)


class GenerateLPNsResponse(BaseModel):
    lpn_numbers: list[str]


# Allocation

class AllocateItem(BaseModel):
    """Allocate to one export product line, by explicit LPNs or FIFO quantity."""
    product_line_index: int = Field(..., ge=0)
    batch_number: Optional[str] = None
    lpn_ids: Optional[List[str]] = None
    quantity: Optional[float] = Field(None, gt=0)


class AllocateRequest(BaseModel):
    items: List[AllocateItem]


class OutboundAllocateItem(BaseModel):
    product_line_id: str
    batch_number: Optional[str] = None
    lpn_ids: Optional[List[str]] = None
    quantity: Optional[float] = Field(None, gt=0)


class OutboundAllocateRequest(BaseModel):
    allocations: List[OutboundAllocateItem]


# Pickup

class ExportPickupItem(BaseModel):
    allocation_id: str
    product_line_index: int = Field(..., ge=0)
    lpn_ids: List[str]
    buffer_qty: float = Field(0, ge=0)
    notes: Optional[str] = None
    complete: bool = True


class ExportPickupRequest(BaseModel):
    pickups: List[ExportPickupItem]


class OutboundPickupRequest(BaseModel):
    lpn_ids: List[str]
    buffer_qty: float = Field(0, ge=0)
    notes: Optional[str] = None
    complete: bool = True


class PickupStockUpdate(BaseModel):
    buffer_qty: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None
    pickup_status: Optional[str] = Field(None, pattern="^(draft|completed|cancelled)$")


class PickupStockResponse(BaseModel):
    id: str
    tenant_id: str
    outbound_inventory_id: Optional[str] = None
    outbound_product_line_id: Optional[str] = None
    container_detail_id: Optional[str] = None
    container_stock_allocation_id: Optional[str] = None
    product_line_index: Optional[int] = None
    picked_up_lpns: list[LPNRef]
    picked_up_qty: float
    buffer_qty: float
    final_picked_up_qty: float
    pickup_status: str
    picked_up_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PickupStockListResponse(BaseModel):
    items: list[PickupStockResponse]
    total: int
    page: int
    page_size: int


class PickupResult(BaseModel):
    created: list[PickupStockResponse]
    errors: list[ItemError] = []


# Dispatch

class ContainerDispatchRequest(BaseModel):
    driver_id: str
    vehicle_id: str


class OutboundDispatchRequest(BaseModel):
    vehicle_id: str
    driver_id: Optional[str] = None
    dispatch_date: Optional[date] = None
    dispatch_time: Optional[str] = Field(None, max_length=10)
    notes: Optional[str] = None


# Inventory

class InventoryRow(BaseModel):
    sku_id: Optional[str]
    batch_number: Optional[str]
    total_qty: float
    available_qty: float
    reserved_qty: float
    allocated_qty: float
    picked_qty: float
    dispatched_qty: float
    lpn_count: int
    locations: list[str]


class InventoryResponse(BaseModel):
    items: list[InventoryRow]
    total: int


class WarehouseBatch(BaseModel):
    batch_number: str
    sku_id: Optional[str] = None
    sku_description: Optional[str] = None


class WarehouseBatchList(BaseModel):
    batches: list[WarehouseBatch]


class WarehouseLocationList(BaseModel):
    locations: list[str]


class BatchRenumberRequest(BaseModel):
    sku_id: str
    old_batch_number: str = Field(..., min_length=1, max_length=100)
    new_batch_number: str = Field(..., min_length=1, max_length=100)


class ReceivedQuantityRequest(BaseModel):
    sku_id: str
    received_qty: float = Field(..., ge=0)


class InventoryUpdateResult(BaseModel):
    updated_lines: int
    updated_lpns: int = 0
    message: str
