"""
Container Schemas

Request/response models for container bookings, container details and
container stock allocations.
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from tms.models.container import Direction
from tms.schemas.stock import ItemError


class Routing(BaseModel):
    """Empty or full container routing."""
    shipping_line_id: Optional[str] = None
    pickup_location_id: Optional[str] = None
    pickup_date: Optional[date] = None
    via_locations: List[str] = []
    dropoff_location_id: Optional[str] = None
    dropoff_date: Optional[date] = None


class ProductLine(BaseModel):
    """One product line of a container stock allocation."""
    sku_id: Optional[str] = None
    sku_description: Optional[str] = None
    batch_number: Optional[str] = None
    lpn_qty: Optional[str] = None
    sqm_per_su: Optional[float] = None
    # Export
    expected_qty: Optional[float] = None
    expected_weight: Optional[float] = None
    allocated_qty: Optional[float] = None
    allocated_weight: Optional[float] = None
    allocated_cubic_per_hu: Optional[float] = None
    plt_qty: Optional[float] = None
    picked_qty: Optional[float] = None
    picked_weight: Optional[float] = None
    lpns: List[Dict[str, Any]] = []
    location: Optional[str] = None
    # Import
    expected_qty_import: Optional[float] = None
    received_qty: Optional[float] = None
    expected_weight_import: Optional[float] = None
    received_weight: Optional[float] = None
    # Measurements
    weight_per_hu: Optional[float] = None
    expected_cubic_per_hu: Optional[float] = None
    received_cubic_per_hu: Optional[float] = None
    pallet_spaces: Optional[float] = None
    expiry_date: Optional[date] = None


# Bookings

class BookingBase(BaseModel):
    customer_reference: Optional[str] = Field(None, max_length=100)
    booking_reference: Optional[str] = Field(None, max_length=100)
    charge_to_id: Optional[str] = None
    charge_to_collection: Optional[str] = Field(None, pattern="^(customers|paying_customers)$")
    charge_to_contact_name: Optional[str] = None
    charge_to_contact_number: Optional[str] = None
    consignee_id: Optional[str] = None
    consignor_id: Optional[str] = None

    vessel_id: Optional[str] = None
    eta: Optional[datetime] = None
    availability: Optional[bool] = None
    storage_start: Optional[date] = None
    first_free_import_date: Optional[date] = None
    etd: Optional[datetime] = None
    receival_start: Optional[date] = None
    cutoff: Optional[bool] = None

    from_id: Optional[str] = None
    from_collection: Optional[str] = None
    from_address: Optional[str] = None
    from_city: Optional[str] = None
    from_state: Optional[str] = None
    from_postcode: Optional[str] = None
    to_id: Optional[str] = None
    to_collection: Optional[str] = None
    to_address: Optional[str] = None
    to_city: Optional[str] = None
    to_state: Optional[str] = None
    to_postcode: Optional[str] = None
    container_size_ids: Optional[List[str]] = None
    container_quantities: Optional[Dict[str, int]] = None

    empty_routing: Optional[Routing] = None
    full_routing: Optional[Routing] = None

    requested_delivery_date: Optional[date] = None
    instructions: Optional[str] = None
    job_notes: Optional[str] = None
    release_number: Optional[str] = None
    weight: Optional[str] = None


class BookingCreate(BookingBase):
    """Schema for creating a booking. The booking code is generated."""
    pass


class BookingUpdate(BookingBase):
    """Schema for updating a booking. All fields optional."""
    pass


class BookingResponse(BookingBase):
    id: str
    tenant_id: str
    direction: Direction
    booking_code: str
    status: str
    driver_allocation: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class BookingListResponse(BaseModel):
    items: list[BookingResponse]
    total: int
    page: int
    page_size: int


class BookingStatusUpdate(BaseModel):
    status: str


class NextStatusesResponse(BaseModel):
    current_status: str
    next_statuses: list[str]


class DriverAssignment(BaseModel):
    driver_id: Optional[str] = None
    vehicle_id: Optional[str] = None
    trailer_id: Optional[str] = None
    dispatched_at: Optional[datetime] = None


class DriverAllocation(BaseModel):
    """Driver assignments keyed by container id."""
    containers: Dict[str, DriverAssignment] = {}


# Container details

class ContainerDetailBase(BaseModel):
    warehouse_id: Optional[str] = None
    container_size_id: Optional[str] = None
    gross: Optional[str] = None
    tare: Optional[str] = None
    net: Optional[str] = None
    pin: Optional[str] = None
    iso_code: Optional[str] = Field(None, max_length=10)
    seal_number: Optional[str] = None
    time_slot: Optional[str] = None
    empty_time_slot: Optional[str] = None
    dehire_date: Optional[date] = None
    customer_request_date: Optional[date] = None
    confirmed_unpack_date: Optional[date] = None
    shipping_line_id: Optional[str] = None
    country_of_origin: Optional[str] = None
    order_ref: Optional[str] = None
    dock: Optional[str] = None
    yard_location: Optional[str] = None
    secure_seals_intact: Optional[bool] = None
    inspect_unpack: Optional[bool] = None
    house_bill_number: Optional[str] = None
    ocean_bill_number: Optional[str] = None
    vent_airflow: Optional[str] = None


class ContainerDetailCreate(ContainerDetailBase):
    """Container number is generated when omitted."""
    booking_id: str
    container_number: Optional[str] = Field(None, min_length=1, max_length=20)


class ContainerDetailUpdate(ContainerDetailBase):
    container_number: Optional[str] = Field(None, min_length=1, max_length=20)


class ContainerDetailResponse(ContainerDetailBase):
    id: str
    tenant_id: str
    booking_id: str
    direction: Direction
    status: str
    container_number: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ContainerDetailListResponse(BaseModel):
    items: list[ContainerDetailResponse]
    total: int
    page: int
    page_size: int


class ContainerStatusUpdate(BaseModel):
    status: str


# Stock allocations

class StockAllocationCreate(BaseModel):
    container_detail_id: str
    product_lines: List[ProductLine] = []


class StockAllocationUpdate(BaseModel):
    product_lines: Optional[List[ProductLine]] = None


class StockAllocationResponse(BaseModel):
    id: str
    tenant_id: str
    container_detail_id: str
    booking_id: str
    direction: Direction
    stage: str
    product_lines: list[ProductLine]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class StockAllocationListResponse(BaseModel):
    items: list[StockAllocationResponse]
    total: int
    page: int
    page_size: int


class AllocateResult(BaseModel):
    allocation: StockAllocationResponse
    errors: list[ItemError] = []
