"""
Entity Settings Models

Tenant reference data used by bookings and warehouse jobs:
warehouses, customers, SKUs, fleet, shipping lines, wharves and codes.
These are plain records edited from the settings screens.
"""
from sqlalchemy import Column, String, Boolean, Date, Float, Integer, Text, ForeignKey, Index
from tms.database import Base
from tms.models.mixins import TenantScopedMixin


class Warehouse(TenantScopedMixin, Base):
    __tablename__ = "warehouses"

    name = Column(String(255), nullable=False)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postcode = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    type = Column(String(50), nullable=True)


class Store(TenantScopedMixin, Base):
    __tablename__ = "stores"

    warehouse_id = Column(String(36), ForeignKey("warehouses.id", ondelete="CASCADE"), nullable=True, index=True)
    store_name = Column(String(255), nullable=False)
    count_per_pallet = Column(Integer, nullable=True)
    count_per_pallet_space = Column(Integer, nullable=True)
    zone_type = Column(String(50), nullable=True)  # indock, outdock, storage


class Customer(TenantScopedMixin, Base):
    __tablename__ = "customers"

    customer_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postcode = Column(String(20), nullable=True)


class PayingCustomer(TenantScopedMixin, Base):
    __tablename__ = "paying_customers"

    customer_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    abn = Column(String(20), nullable=True)
    billing_street = Column(String(255), nullable=True)
    billing_city = Column(String(100), nullable=True)
    billing_state = Column(String(100), nullable=True)
    billing_postcode = Column(String(20), nullable=True)


class StorageUnit(TenantScopedMixin, Base):
    __tablename__ = "storage_units"

    abbreviation = Column(String(20), nullable=True)
    name = Column(String(255), nullable=False)
    pallet_spaces = Column(Float, nullable=True)
    length_per_su = Column(Float, nullable=True)
    width_per_su = Column(Float, nullable=True)
    whs_rate = Column(Float, nullable=True)


class HandlingUnit(TenantScopedMixin, Base):
    __tablename__ = "handling_units"

    abbreviation = Column(String(20), nullable=True)
    name = Column(String(255), nullable=False)


class SKU(TenantScopedMixin, Base):
    __tablename__ = "skus"

    sku_code = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    customer_id = Column(String(36), ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    storage_unit_id = Column(String(36), ForeignKey("storage_units.id", ondelete="SET NULL"), nullable=True)
    handling_unit_id = Column(String(36), ForeignKey("handling_units.id", ondelete="SET NULL"), nullable=True)
    # Handling units per storage unit (e.g. cartons per pallet)
    hu_per_su = Column(Float, nullable=True)
    weight_per_hu = Column(Float, nullable=True)
    # Millimetres
    length_per_hu = Column(Float, nullable=True)
    width_per_hu = Column(Float, nullable=True)
    height_per_hu = Column(Float, nullable=True)
    is_expiry = Column(Boolean, default=False, nullable=False)
    pick_strategy = Column(String(20), nullable=True)  # fifo, fefo

    __table_args__ = (
        Index('idx_sku_tenant_code', 'tenant_id', 'sku_code', unique=True),
    )


class Vehicle(TenantScopedMixin, Base):
    __tablename__ = "vehicles"

    fleet_number = Column(String(50), nullable=False)
    rego = Column(String(20), nullable=True)
    rego_expiry_date = Column(Date, nullable=True)
    description = Column(Text, nullable=True)
    gps_id = Column(String(100), nullable=True)
    sideloader = Column(Boolean, default=False, nullable=False)


class Driver(TenantScopedMixin, Base):
    __tablename__ = "drivers"

    name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    vehicle_id = Column(String(36), ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True)
    employee_type = Column(String(20), nullable=True)  # permanent, casual, contractor
    driving_licence_number = Column(String(50), nullable=True)
    licence_expiry = Column(Date, nullable=True)
    dangerous_goods_cert_number = Column(String(50), nullable=True)
    msic_number = Column(String(50), nullable=True)


class TrailerType(TenantScopedMixin, Base):
    __tablename__ = "trailer_types"

    name = Column(String(100), nullable=False)
    max_weight = Column(Float, nullable=True)
    max_cube = Column(Float, nullable=True)
    max_pallet = Column(Integer, nullable=True)


class Trailer(TenantScopedMixin, Base):
    __tablename__ = "trailers"

    fleet_number = Column(String(50), nullable=False)
    rego = Column(String(20), nullable=True)
    rego_expiry_date = Column(Date, nullable=True)
    trailer_type_id = Column(String(36), ForeignKey("trailer_types.id", ondelete="SET NULL"), nullable=True)
    capacity = Column(Float, nullable=True)


class ShippingLine(TenantScopedMixin, Base):
    __tablename__ = "shipping_lines"

    name = Column(String(255), nullable=False)
    contact_email = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    import_free_days = Column(Integer, nullable=True)


class Vessel(TenantScopedMixin, Base):
    __tablename__ = "vessels"

    vessel_name = Column(String(255), nullable=False)
    voyage_number = Column(String(50), nullable=True)
    lloyds_number = Column(String(50), nullable=True)
    shipping_line_id = Column(String(36), ForeignKey("shipping_lines.id", ondelete="SET NULL"), nullable=True)
    job_type = Column(String(10), nullable=True)  # import, export


class Wharf(TenantScopedMixin, Base):
    __tablename__ = "wharves"

    name = Column(String(255), nullable=False)
    code = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)


class EmptyPark(TenantScopedMixin, Base):
    __tablename__ = "empty_parks"

    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)


class DelayPoint(TenantScopedMixin, Base):
    __tablename__ = "delay_points"

    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)


class ContainerSize(TenantScopedMixin, Base):
    __tablename__ = "container_sizes"

    size = Column(Float, nullable=False)
    code = Column(String(20), nullable=True)
    description = Column(String(255), nullable=True)
    attribute = Column(String(50), nullable=True)


class ContainerWeight(TenantScopedMixin, Base):
    __tablename__ = "container_weights"

    size = Column(Float, nullable=False)
    weight = Column(Float, nullable=False)
    attribute = Column(String(50), nullable=True)


class DamageCode(TenantScopedMixin, Base):
    __tablename__ = "damage_codes"

    freight_type = Column(String(50), nullable=True)
    reason = Column(String(255), nullable=False)


class DetentionControl(TenantScopedMixin, Base):
    __tablename__ = "detention_controls"

    shipping_line_id = Column(String(36), ForeignKey("shipping_lines.id", ondelete="CASCADE"), nullable=True)
    container_type = Column(String(50), nullable=True)
    import_free_days = Column(Integer, nullable=True)
    export_free_days = Column(Integer, nullable=True)


class TransportCompany(TenantScopedMixin, Base):
    __tablename__ = "transport_companies"

    name = Column(String(255), nullable=False)
    contact = Column(String(255), nullable=True)
    mobile = Column(String(50), nullable=True)
