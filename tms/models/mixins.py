"""
Shared columns for tenant-owned tables.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import declared_attr
from datetime import datetime
import uuid

from tms.core.exceptions import NotFoundError


class TenantScopedMixin:
    """id, tenant_id and timestamps for every tenant-owned record."""

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    @declared_attr
    def tenant_id(cls):
        return Column(
            String(36),
            ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True
        )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<{type(self).__name__} {self.id} (tenant={self.tenant_id})>"

    @classmethod
    def get_for_tenant(cls, db, tenant_id: str, record_id: str, entity: str = None):
        """
        Fetch a record owned by the tenant.

        Raises NotFoundError for missing ids and for ids of other tenants.
        """
        record = None
        if record_id:
            record = db.query(cls).filter(cls.id == record_id, cls.tenant_id == tenant_id).first()
        if record is None:
            raise NotFoundError(entity or cls.__name__, record_id or "")
        return record
