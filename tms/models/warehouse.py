"""
Warehouse Stock Models

Inbound jobs receive goods, put-away stock records where each LPN sits,
outbound jobs allocate and pick LPNs, and dispatches send them out.

PutAwayStock is the stock ledger. Its allocation_status moves
available -> allocated -> picked -> dispatched, and the allocated_to_*
columns say which container allocation or outbound line holds it.
"""
from sqlalchemy import (
    Column, String, Boolean, Date, DateTime, Float, Integer, Text, ForeignKey, Index, JSON,
)
from sqlalchemy.orm import relationship
from datetime import datetime
from tms.database import Base
from tms.models.mixins import TenantScopedMixin
import enum


class OutboundStatus(str, enum.Enum):
    DRAFT = "draft"
    PARTIALLY_ALLOCATED = "partially_allocated"
    ALLOCATED = "allocated"
    READY_TO_PICK = "ready_to_pick"
    PARTIALLY_PICKED = "partially_picked"
    PICKED = "picked"
    READY_TO_DISPATCH = "ready_to_dispatch"
    DISPATCHED = "dispatched"


class StockStatus(str, enum.Enum):
    """allocation_status of a put-away stock record (one LPN)."""
    AVAILABLE = "available"
    RESERVED = "reserved"
    ALLOCATED = "allocated"
    PICKED = "picked"
    DISPATCHED = "dispatched"


class PickupStatus(str, enum.Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DispatchStatus(str, enum.Enum):
    PLANNED = "planned"
    ALLOCATED = "allocated"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class InboundInventory(TenantScopedMixin, Base):
    __tablename__ = "inbound_inventory"

    job_code = Column(String(50), nullable=False)
    expected_date = Column(DateTime, nullable=True)
    completed_date = Column(DateTime, nullable=True)
    delivery_customer_reference_number = Column(String(100), nullable=True)
    ordering_customer_reference_number = Column(String(100), nullable=True)
    delivery_customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    supplier_id = Column(String(36), nullable=True)
    transport_company_id = Column(
        String(36), ForeignKey("transport_companies.id", ondelete="SET NULL"), nullable=True
    )
    warehouse_id = Column(String(36), ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)
    transport_mode = Column(String(20), nullable=True)  # our, third_party
    notes = Column(Text, nullable=True)
    chep = Column(Integer, nullable=True)
    loscam = Column(Integer, nullable=True)
    plain = Column(Integer, nullable=True)
    pallet_transfer_docket = Column(String(100), nullable=True)

    product_lines = relationship(
        "InboundProductLine",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="InboundProductLine.created_at",
    )

    __table_args__ = (
        Index('idx_inbound_tenant_code', 'tenant_id', 'job_code', unique=True),
    )


class InboundProductLine(TenantScopedMixin, Base):
    __tablename__ = "inbound_product_lines"

    inbound_inventory_id = Column(
        String(36),
        ForeignKey("inbound_inventory.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sku_id = Column(String(36), ForeignKey("skus.id", ondelete="SET NULL"), nullable=True)
    sku_description = Column(String(255), nullable=True)
    batch_number = Column(String(100), nullable=True)
    lpn_qty = Column(String(50), nullable=True)
    sqm_per_su = Column(Float, nullable=True)
    expected_qty = Column(Float, nullable=True)
    received_qty = Column(Float, nullable=True)
    expected_weight = Column(Float, nullable=True)
    received_weight = Column(Float, nullable=True)
    pallet_spaces = Column(Float, nullable=True)
    weight_per_hu = Column(Float, nullable=True)
    expected_cubic_per_hu = Column(Float, nullable=True)
    received_cubic_per_hu = Column(Float, nullable=True)
    expiry_date = Column(Date, nullable=True)

    job = relationship("InboundInventory", back_populates="product_lines")


class OutboundInventory(TenantScopedMixin, Base):
    __tablename__ = "outbound_inventory"

    job_code = Column(String(50), nullable=False)
    status = Column(String(30), default=OutboundStatus.DRAFT.value, nullable=False, index=True)
    customer_ref_number = Column(String(100), nullable=True)
    consignee_ref_number = Column(String(100), nullable=True)
    container_number = Column(String(20), nullable=True)
    inspection_number = Column(String(100), nullable=True)
    inbound_job_number = Column(String(50), nullable=True)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)
    customer_id = Column(String(36), nullable=True)
    customer_to_id = Column(String(36), nullable=True)
    customer_from_id = Column(String(36), nullable=True)
    required_date_time = Column(DateTime, nullable=True)
    order_notes = Column(Text, nullable=True)
    pallet_count = Column(Integer, nullable=True)

    product_lines = relationship(
        "OutboundProductLine",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="OutboundProductLine.created_at",
    )

    __table_args__ = (
        Index('idx_outbound_tenant_code', 'tenant_id', 'job_code', unique=True),
    )


class OutboundProductLine(TenantScopedMixin, Base):
    __tablename__ = "outbound_product_lines"

    outbound_inventory_id = Column(
        String(36),
        ForeignKey("outbound_inventory.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sku_id = Column(String(36), ForeignKey("skus.id", ondelete="SET NULL"), nullable=True)
    sku_description = Column(String(255), nullable=True)
    batch_number = Column(String(100), nullable=True)
    expiry = Column(Date, nullable=True)
    required_qty = Column(Float, nullable=True)
    allocated_qty = Column(Float, default=0, nullable=False)
    required_weight = Column(Float, nullable=True)
    allocated_weight = Column(Float, nullable=True)
    required_cubic_per_hu = Column(Float, nullable=True)
    allocated_cubic_per_hu = Column(Float, nullable=True)
    plt_qty = Column(Float, nullable=True)
    container_number = Column(String(20), nullable=True)
    # [{"lpn_id": ..., "lpn_number": ...}]
    lpns = Column(JSON, nullable=False, default=list)
    location = Column(String(100), nullable=True)

    job = relationship("OutboundInventory", back_populates="product_lines")


class PutAwayStock(TenantScopedMixin, Base):
    __tablename__ = "put_away_stock"

    lpn_number = Column(String(30), nullable=False)

    # Source: an inbound job line or an import container allocation
    inbound_inventory_id = Column(
        String(36), ForeignKey("inbound_inventory.id", ondelete="SET NULL"), nullable=True
    )
    inbound_product_line_id = Column(
        String(36), ForeignKey("inbound_product_lines.id", ondelete="SET NULL"), nullable=True
    )
    container_detail_id = Column(
        String(36), ForeignKey("container_details.id", ondelete="SET NULL"), nullable=True, index=True
    )
    container_stock_allocation_id = Column(
        String(36), ForeignKey("container_stock_allocations.id", ondelete="SET NULL"), nullable=True
    )
    product_line_index = Column(Integer, nullable=True)

    sku_id = Column(String(36), ForeignKey("skus.id", ondelete="SET NULL"), nullable=True, index=True)
    batch_number = Column(String(100), nullable=True)
    warehouse_id = Column(String(36), ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)
    location = Column(String(100), nullable=True)
    hu_qty = Column(Float, nullable=False, default=0)

    allocation_status = Column(String(20), default=StockStatus.AVAILABLE.value, nullable=False, index=True)
    # Holder of the LPN once allocated
    allocated_to_container_id = Column(String(36), nullable=True)
    allocated_to_allocation_id = Column(String(36), nullable=True, index=True)
    allocated_to_outbound_id = Column(String(36), nullable=True, index=True)
    allocated_to_outbound_line_id = Column(String(36), nullable=True)

    is_deleted = Column(Boolean, default=False, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_put_away_tenant_lpn', 'tenant_id', 'lpn_number', unique=True),
        Index('idx_put_away_tenant_sku_status', 'tenant_id', 'sku_id', 'allocation_status'),
    )

    def soft_delete(self):
        self.is_deleted = True
        self.deleted_at = datetime.utcnow()

    def release(self):
        """Return the LPN to available stock."""
        self.allocation_status = StockStatus.AVAILABLE.value
        self.allocated_to_container_id = None
        self.allocated_to_allocation_id = None
        self.allocated_to_outbound_id = None
        self.allocated_to_outbound_line_id = None


class PickupStock(TenantScopedMixin, Base):
    __tablename__ = "pickup_stock"

    outbound_inventory_id = Column(
        String(36), ForeignKey("outbound_inventory.id", ondelete="CASCADE"), nullable=True, index=True
    )
    outbound_product_line_id = Column(
        String(36), ForeignKey("outbound_product_lines.id", ondelete="CASCADE"), nullable=True
    )
    container_detail_id = Column(
        String(36), ForeignKey("container_details.id", ondelete="CASCADE"), nullable=True, index=True
    )
    container_stock_allocation_id = Column(
        String(36), ForeignKey("container_stock_allocations.id", ondelete="CASCADE"), nullable=True
    )
    product_line_index = Column(Integer, nullable=True)

    # [{"lpn_id", "lpn_number", "hu_qty", "location"}]
    picked_up_lpns = Column(JSON, nullable=False, default=list)
    picked_up_qty = Column(Float, nullable=False, default=0)
    buffer_qty = Column(Float, nullable=False, default=0)
    final_picked_up_qty = Column(Float, nullable=False, default=0)
    pickup_status = Column(String(20), default=PickupStatus.DRAFT.value, nullable=False, index=True)
    picked_up_by = Column(String(36), ForeignKey("tenant_users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)


class Dispatch(TenantScopedMixin, Base):
    __tablename__ = "dispatches"

    outbound_inventory_id = Column(
        String(36), ForeignKey("outbound_inventory.id", ondelete="CASCADE"), nullable=True, index=True
    )
    dispatch_date = Column(Date, nullable=True)
    dispatch_time = Column(String(10), nullable=True)
    driver_id = Column(String(36), ForeignKey("drivers.id", ondelete="SET NULL"), nullable=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    status = Column(String(20), default=DispatchStatus.PLANNED.value, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(36), ForeignKey("tenant_users.id", ondelete="SET NULL"), nullable=True)
    allocated_at = Column(DateTime, nullable=True)
