"""
Database Models

Every tenant-owned model carries tenant_id for multi-tenant isolation.
"""
from tms.models.tenant import Tenant, TenantStatus
from tms.models.user import TenantUser, TenantRole
from tms.models.entities import (
    Warehouse, Store, Customer, PayingCustomer, StorageUnit, HandlingUnit, SKU,
    Vehicle, Driver, TrailerType, Trailer, ShippingLine, Vessel, Wharf, EmptyPark,
    DelayPoint, ContainerSize, ContainerWeight, DamageCode, DetentionControl,
    TransportCompany,
)
from tms.models.container import (
    Direction, BookingStatus, ContainerStatus, AllocationStage,
    ContainerBooking, ContainerDetail, ContainerStockAllocation,
)
from tms.models.warehouse import (
    OutboundStatus, StockStatus, PickupStatus, DispatchStatus,
    InboundInventory, InboundProductLine, OutboundInventory, OutboundProductLine,
    PutAwayStock, PickupStock, Dispatch,
)

__all__ = [
    "Tenant", "TenantStatus", "TenantUser", "TenantRole",
    "Warehouse", "Store", "Customer", "PayingCustomer", "StorageUnit", "HandlingUnit",
    "SKU", "Vehicle", "Driver", "TrailerType", "Trailer", "ShippingLine", "Vessel",
    "Wharf", "EmptyPark", "DelayPoint", "ContainerSize", "ContainerWeight",
    "DamageCode", "DetentionControl", "TransportCompany",
    "Direction", "BookingStatus", "ContainerStatus", "AllocationStage",
    "ContainerBooking", "ContainerDetail", "ContainerStockAllocation",
    "OutboundStatus", "StockStatus", "PickupStatus", "DispatchStatus",
    "InboundInventory", "InboundProductLine", "OutboundInventory", "OutboundProductLine",
    "PutAwayStock", "PickupStock", "Dispatch",
]
