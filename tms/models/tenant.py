"""
Tenant Model

The tenant is the isolation boundary: one freight company with its own
users, reference data, bookings and warehouse stock.

Shared database, shared schema: every tenant-owned table carries
tenant_id and every query filters on it.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from tms.database import Base
import uuid
import enum


class TenantStatus(str, enum.Enum):
    """Onboarding review status."""
    PENDING = "pending"
    NEEDS_CORRECTION = "needs_correction"
    APPROVED = "approved"
    REJECTED = "rejected"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Tenant identification
    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)

    status = Column(
        SQLEnum(TenantStatus),
        default=TenantStatus.PENDING,
        nullable=False
    )
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Company details
    email = Column(String(255), nullable=False)
    abn = Column(String(20), nullable=True)
    acn = Column(String(20), nullable=True)
    website = Column(String(255), nullable=True)
    scac = Column(String(10), nullable=True)
    phone = Column(String(50), nullable=True)
    street = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country_code = Column(String(2), nullable=True)

    # Overrides for the global rate limits (NULL = use default)
    rate_limit_per_minute = Column(Integer, nullable=True)
    rate_limit_burst = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    users = relationship("TenantUser", back_populates="tenant", cascade="all, delete-orphan")
    roles = relationship("TenantRole", back_populates="tenant", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_tenant_active_subdomain', 'is_active', 'subdomain'),
    )

    def __repr__(self):
        return f"<Tenant {self.slug}>"

    @property
    def is_approved(self):
        return self.status == TenantStatus.APPROVED
