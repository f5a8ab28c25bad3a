"""
Container Booking Models

ContainerBooking holds both import and export jobs, told apart by
direction. Each booking has containers (ContainerDetail), and each
container has stock allocations whose product_lines list records what
goes in or comes out of the box.

Product lines are stored as an ordered JSON list and addressed by
their index. Code that mutates the list must reassign it or call
flag_modified so the change is persisted.
"""
from sqlalchemy import (
    Column, String, Boolean, Date, DateTime, Text, ForeignKey, Index, JSON,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from tms.database import Base
from tms.models.mixins import TenantScopedMixin
import enum


class Direction(str, enum.Enum):
    IMPORT = "import"
    EXPORT = "export"


class BookingStatus(str, enum.Enum):
    """
    Booking status.

    The first five are the lifecycle set by users. The rest are progress
    values written when container statuses change.
    """
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    # Import progress
    EXPECTING = "expecting"
    PARTIALLY_RECEIVED = "partially_received"
    RECEIVED = "received"
    PARTIALLY_PUT_AWAY = "partially_put_away"
    PUT_AWAY = "put_away"
    # Export progress
    ALLOCATED = "allocated"
    PARTIALLY_PICKED = "partially_picked"
    PICKED = "picked"
    READY_TO_DISPATCH = "ready_to_dispatch"
    DISPATCHED = "dispatched"


class ContainerStatus(str, enum.Enum):
    # Import
    EXPECTING = "expecting"
    RECEIVED = "received"
    PUT_AWAY = "put_away"
    # Export
    ALLOCATED = "allocated"
    PICKED_UP = "picked_up"
    DISPATCHED = "dispatched"


class AllocationStage(str, enum.Enum):
    # Import
    EXPECTED = "expected"
    RECEIVED = "received"
    PUT_AWAY = "put_away"
    # Export
    ALLOCATED = "allocated"
    PICKED = "picked"
    DISPATCHED = "dispatched"


class ContainerBooking(TenantScopedMixin, Base):
    __tablename__ = "container_bookings"

    direction = Column(SQLEnum(Direction), nullable=False, index=True)
    booking_code = Column(String(50), nullable=False, index=True)
    status = Column(String(30), default=BookingStatus.DRAFT.value, nullable=False, index=True)

    # Basic info
    customer_reference = Column(String(100), nullable=True)
    booking_reference = Column(String(100), nullable=True)
    # charge_to may point at customers or paying-customers
    charge_to_id = Column(String(36), nullable=True)
    charge_to_collection = Column(String(50), nullable=True)
    charge_to_contact_name = Column(String(255), nullable=True)
    charge_to_contact_number = Column(String(50), nullable=True)
    consignee_id = Column(String(36), nullable=True)
    consignor_id = Column(String(36), nullable=True)

    # Vessel info
    vessel_id = Column(String(36), ForeignKey("vessels.id", ondelete="SET NULL"), nullable=True)
    eta = Column(DateTime, nullable=True)
    availability = Column(Boolean, nullable=True)
    storage_start = Column(Date, nullable=True)
    first_free_import_date = Column(Date, nullable=True)
    etd = Column(DateTime, nullable=True)
    receival_start = Column(Date, nullable=True)
    cutoff = Column(Boolean, nullable=True)

    # Locations
    from_id = Column(String(36), nullable=True)
    from_collection = Column(String(50), nullable=True)
    from_address = Column(String(255), nullable=True)
    from_city = Column(String(100), nullable=True)
    from_state = Column(String(100), nullable=True)
    from_postcode = Column(String(20), nullable=True)
    to_id = Column(String(36), nullable=True)
    to_collection = Column(String(50), nullable=True)
    to_address = Column(String(255), nullable=True)
    to_city = Column(String(100), nullable=True)
    to_state = Column(String(100), nullable=True)
    to_postcode = Column(String(20), nullable=True)
    container_size_ids = Column(JSON, nullable=False, default=list)
    # container size id -> number of containers
    container_quantities = Column(JSON, nullable=False, default=dict)

    # Routing: {shipping_line_id, pickup_location_id, pickup_date,
    # via_locations, dropoff_location_id, dropoff_date}
    empty_routing = Column(JSON, nullable=True)
    full_routing = Column(JSON, nullable=True)

    requested_delivery_date = Column(Date, nullable=True)
    instructions = Column(Text, nullable=True)
    job_notes = Column(Text, nullable=True)
    release_number = Column(String(100), nullable=True)
    weight = Column(String(50), nullable=True)

    # {"containers": {container_id: {driver_id, vehicle_id, ...}}}
    driver_allocation = Column(JSON, nullable=True)

    containers = relationship(
        "ContainerDetail",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="ContainerDetail.created_at",
    )
    allocations = relationship(
        "ContainerStockAllocation",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="ContainerStockAllocation.created_at",
    )

    __table_args__ = (
        Index('idx_booking_tenant_direction_status', 'tenant_id', 'direction', 'status'),
        Index('idx_booking_tenant_code', 'tenant_id', 'booking_code', unique=True),
    )


class ContainerDetail(TenantScopedMixin, Base):
    __tablename__ = "container_details"

    booking_id = Column(
        String(36),
        ForeignKey("container_bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    direction = Column(SQLEnum(Direction), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)

    container_number = Column(String(20), nullable=False)
    container_size_id = Column(String(36), ForeignKey("container_sizes.id", ondelete="SET NULL"), nullable=True)
    gross = Column(String(50), nullable=True)
    tare = Column(String(50), nullable=True)
    net = Column(String(50), nullable=True)
    pin = Column(String(50), nullable=True)
    iso_code = Column(String(10), nullable=True)
    seal_number = Column(String(50), nullable=True)
    time_slot = Column(String(50), nullable=True)
    empty_time_slot = Column(String(50), nullable=True)
    dehire_date = Column(Date, nullable=True)
    customer_request_date = Column(Date, nullable=True)
    confirmed_unpack_date = Column(Date, nullable=True)
    shipping_line_id = Column(String(36), ForeignKey("shipping_lines.id", ondelete="SET NULL"), nullable=True)
    country_of_origin = Column(String(100), nullable=True)
    order_ref = Column(String(100), nullable=True)
    dock = Column(String(50), nullable=True)
    yard_location = Column(String(100), nullable=True)
    secure_seals_intact = Column(Boolean, nullable=True)
    inspect_unpack = Column(Boolean, nullable=True)
    house_bill_number = Column(String(100), nullable=True)
    ocean_bill_number = Column(String(100), nullable=True)
    vent_airflow = Column(String(50), nullable=True)

    booking = relationship("ContainerBooking", back_populates="containers")
    allocations = relationship(
        "ContainerStockAllocation",
        back_populates="container",
        cascade="all, delete-orphan",
        order_by="ContainerStockAllocation.created_at",
    )

    __table_args__ = (
        Index('idx_container_tenant_number', 'tenant_id', 'container_number'),
    )


class ContainerStockAllocation(TenantScopedMixin, Base):
    __tablename__ = "container_stock_allocations"

    container_detail_id = Column(
        String(36),
        ForeignKey("container_details.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    booking_id = Column(
        String(36),
        ForeignKey("container_bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    direction = Column(SQLEnum(Direction), nullable=False)
    stage = Column(String(20), nullable=False)
    product_lines = Column(JSON, nullable=False, default=list)

    container = relationship("ContainerDetail", back_populates="allocations")
    booking = relationship("ContainerBooking", back_populates="allocations")
