"""
Tenant User and Role Models

Users belong to a tenant and get their permissions from a TenantRole.

IMPORTANT: tenant_id is the critical field for data isolation.
Every query MUST filter by tenant_id to prevent cross-tenant data leaks.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Text, JSON
from sqlalchemy.orm import relationship
from tms.database import Base
from tms.models.mixins import TenantScopedMixin


class TenantRole(TenantScopedMixin, Base):
    """
    Named permission set within a tenant.

    permissions maps "<section>_<action>" to a bool. A system role
    (the "Admin" role created at signup) grants everything.
    """
    __tablename__ = "tenant_roles"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    is_system_role = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    permissions = Column(JSON, nullable=False, default=dict)

    tenant = relationship("Tenant", back_populates="roles")
    users = relationship("TenantUser", back_populates="role")

    __table_args__ = (
        Index('idx_role_tenant_name', 'tenant_id', 'name', unique=True),
    )

    def __repr__(self):
        return f"<TenantRole {self.name} (tenant={self.tenant_id})>"


class TenantUser(TenantScopedMixin, Base):
    __tablename__ = "tenant_users"

    # Credentials and profile
    email = Column(String(255), nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    username = Column(String(100), nullable=True)
    phone_mobile = Column(String(50), nullable=True)
    position = Column(String(100), nullable=True)

    role_id = Column(
        String(36),
        ForeignKey("tenant_roles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    last_login_at = Column(DateTime, nullable=True)

    tenant = relationship("Tenant", back_populates="users")
    role = relationship("TenantRole", back_populates="users")

    __table_args__ = (
        # Same email may exist in different tenants
        Index('idx_tenant_user_email', 'tenant_id', 'email', unique=True),
        Index('idx_tenant_user_active', 'tenant_id', 'is_active'),
    )

    def __repr__(self):
        return f"<TenantUser {self.email} (tenant={self.tenant_id})>"

    @property
    def is_admin(self) -> bool:
        return bool(self.role and self.role.is_active and self.role.is_system_role)
