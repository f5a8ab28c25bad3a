"""
Warehouse Schemas

Request/response models for inbound jobs, outbound jobs and dispatches.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from tms.schemas.stock import ItemError, PutAwayRecordIn, PutAwayStockResponse


# Inbound

class InboundProductLineBase(BaseModel):
    sku_id: Optional[str] = None
    sku_description: Optional[str] = None
    batch_number: Optional[str] = None
    lpn_qty: Optional[str] = None
    sqm_per_su: Optional[float] = None
    expected_qty: Optional[float] = None
    received_qty: Optional[float] = None
    expected_weight: Optional[float] = None
    received_weight: Optional[float] = None
    pallet_spaces: Optional[float] = None
    weight_per_hu: Optional[float] = None
    expected_cubic_per_hu: Optional[float] = None
    received_cubic_per_hu: Optional[float] = None
    expiry_date: Optional[date] = None


class InboundProductLineCreate(InboundProductLineBase):
    inbound_inventory_id: str


class InboundProductLineUpdate(InboundProductLineBase):
    pass


class InboundProductLineResponse(InboundProductLineBase):
    id: str
    tenant_id: str
    inbound_inventory_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class InboundProductLineListResponse(BaseModel):
    items: list[InboundProductLineResponse]
    total: int
    page: int
    page_size: int


class InboundBase(BaseModel):
    expected_date: Optional[datetime] = None
    delivery_customer_reference_number: Optional[str] = None
    ordering_customer_reference_number: Optional[str] = None
    delivery_customer_id: Optional[str] = None
    supplier_id: Optional[str] = None
    transport_company_id: Optional[str] = None
    warehouse_id: Optional[str] = None
    transport_mode: Optional[str] = Field(None, pattern="^(our|third_party)$")
    notes: Optional[str] = None
    chep: Optional[int] = None
    loscam: Optional[int] = None
    plain: Optional[int] = None
    pallet_transfer_docket: Optional[str] = None


class InboundCreate(InboundBase):
    """Job code is generated. Product lines may be created with the job."""
    product_lines: List[InboundProductLineBase] = []


class InboundUpdate(InboundBase):
    completed_date: Optional[datetime] = None


class InboundResponse(InboundBase):
    id: str
    tenant_id: str
    job_code: str
    completed_date: Optional[datetime] = None
    product_lines: list[InboundProductLineResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class InboundListResponse(BaseModel):
    items: list[InboundResponse]
    total: int
    page: int
    page_size: int


class ReceivedLine(BaseModel):
    id: str
    received_qty: Optional[float] = None
    received_weight: Optional[float] = None
    received_cubic_per_hu: Optional[float] = None


class InboundReceiveRequest(BaseModel):
    completed_date: Optional[datetime] = None
    product_lines: List[ReceivedLine] = []


class InboundPutAwayRequest(InboundReceiveRequest):
    warehouse_id: Optional[str] = None
    put_away_records: List[PutAwayRecordIn] = []


class InboundPutAwayResponse(BaseModel):
    job: InboundResponse
    put_away_records: list[PutAwayStockResponse] = []


# Outbound

class OutboundProductLineBase(BaseModel):
    sku_id: Optional[str] = None
    sku_description: Optional[str] = None
    batch_number: Optional[str] = None
    expiry: Optional[date] = None
    required_qty: Optional[float] = Field(None, ge=0)
    required_weight: Optional[float] = None
    required_cubic_per_hu: Optional[float] = None
    container_number: Optional[str] = None


class OutboundProductLineCreate(OutboundProductLineBase):
    outbound_inventory_id: str


class OutboundProductLineUpdate(OutboundProductLineBase):
    pass


class OutboundProductLineResponse(OutboundProductLineBase):
    id: str
    tenant_id: str
    outbound_inventory_id: str
    allocated_qty: float
    allocated_weight: Optional[float] = None
    allocated_cubic_per_hu: Optional[float] = None
    plt_qty: Optional[float] = None
    lpns: List[Dict[str, Any]] = []
    location: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class OutboundProductLineListResponse(BaseModel):
    items: list[OutboundProductLineResponse]
    total: int
    page: int
    page_size: int


class OutboundBase(BaseModel):
    customer_ref_number: Optional[str] = None
    consignee_ref_number: Optional[str] = None
    container_number: Optional[str] = None
    inspection_number: Optional[str] = None
    inbound_job_number: Optional[str] = None
    warehouse_id: Optional[str] = None
    customer_id: Optional[str] = None
    customer_to_id: Optional[str] = None
    customer_from_id: Optional[str] = None
    required_date_time: Optional[datetime] = None
    order_notes: Optional[str] = None
    pallet_count: Optional[int] = None


class OutboundCreate(OutboundBase):
    product_lines: List[OutboundProductLineBase] = []


class OutboundUpdate(OutboundBase):
    pass


class OutboundResponse(OutboundBase):
    id: str
    tenant_id: str
    job_code: str
    status: str
    product_lines: list[OutboundProductLineResponse] = []
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OutboundListResponse(BaseModel):
    items: list[OutboundResponse]
    total: int
    page: int
    page_size: int


class OutboundAllocateResult(BaseModel):
    job: OutboundResponse
    errors: list[ItemError] = []


class PickupStatusResponse(BaseModel):
    job_id: str
    status: str
    total_product_lines: int
    picked_product_lines: int
    all_picked: bool
    total_picked_qty: float
    pickup_records: int
    can_dispatch: bool


# Dispatch

class DispatchBase(BaseModel):
    outbound_inventory_id: Optional[str] = None
    dispatch_date: Optional[date] = None
    dispatch_time: Optional[str] = Field(None, max_length=10)
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    notes: Optional[str] = None


class DispatchCreate(DispatchBase):
    pass


class DispatchUpdate(DispatchBase):
    status: Optional[str] = Field(None, pattern="^(planned|allocated|in_transit|delivered|cancelled)$")


class DispatchAllocateRequest(BaseModel):
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None


class DispatchResponse(DispatchBase):
    id: str
    tenant_id: str
    status: str
    created_by: Optional[str] = None
    allocated_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DispatchListResponse(BaseModel):
    items: list[DispatchResponse]
    total: int
    page: int
    page_size: int
