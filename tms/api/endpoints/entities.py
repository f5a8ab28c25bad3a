"""
Entity Settings Endpoints

The same five CRUD routes for every settings table (warehouses, SKUs,
drivers, ...). Each table gets its own router, built by entity_router()
from the model and the schemas generated for it.

All routes require settings_entity_settings.
"""
from fastapi import APIRouter, Depends, status, Query
from pydantic import create_model
from sqlalchemy import or_, String
from sqlalchemy.orm import Session
from typing import List, Optional

from tms.database import get_db
from tms.models import entities
from tms.models.tenant import Tenant
from tms.models.user import TenantUser
from tms.schemas.entities import build_entity_schemas
from tms.api.deps import get_current_tenant, require_permission, Pagination
from tms.core.exceptions import ConflictError
from tms.utils.logging import get_logger

logger = get_logger(__name__)

manage_entities = require_permission("settings_entity_settings")

# URL path -> model
ENTITIES = {
    "warehouses": entities.Warehouse,
    "stores": entities.Store,
    "customers": entities.Customer,
    "paying-customers": entities.PayingCustomer,
    "skus": entities.SKU,
    "storage-units": entities.StorageUnit,
    "handling-units": entities.HandlingUnit,
    "drivers": entities.Driver,
    "vehicles": entities.Vehicle,
    "trailers": entities.Trailer,
    "trailer-types": entities.TrailerType,
    "shipping-lines": entities.ShippingLine,
    "vessels": entities.Vessel,
    "wharves": entities.Wharf,
    "empty-parks": entities.EmptyPark,
    "delay-points": entities.DelayPoint,
    "container-sizes": entities.ContainerSize,
    "container-weights": entities.ContainerWeight,
    "damage-codes": entities.DamageCode,
    "detention-controls": entities.DetentionControl,
    "transport-companies": entities.TransportCompany,
}

# Columns unique within a tenant
UNIQUE_FIELDS = {
    entities.SKU: ("sku_code",),
}


def _check_unique(db: Session, model, tenant: Tenant, data: dict, exclude_id: Optional[str] = None):
    for field in UNIQUE_FIELDS.get(model, ()):
        if data.get(field) is None:
            continue
        query = db.query(model).filter(
            model.tenant_id == tenant.id,
            getattr(model, field) == data[field]
        )
        if exclude_id:
            query = query.filter(model.id != exclude_id)
        if query.first():
            raise ConflictError(f"{model.__name__} with {field} {data[field]!r} already exists")


def _text_columns(model):
    return [
        column for column in model.__table__.columns
        if isinstance(column.type, String) and not column.name.endswith("id")
    ]


def entity_router(path: str, model) -> APIRouter:
    create_schema, update_schema, response_schema = build_entity_schemas(model)
    label = model.__name__

    list_schema = create_model(
        f"{label}ListResponse",
        items=(List[response_schema], ...),
        total=(int, ...),
        page=(int, ...),
        page_size=(int, ...),
    )

    router = APIRouter(prefix=f"/{path}", tags=["entity settings"])

    @router.get("", response_model=list_schema, name=f"list_{path}")
    async def list_records(
        q: Optional[str] = Query(None, description="Case-insensitive text search"),
        pagination: Pagination = Depends(),
        current_user: TenantUser = Depends(manage_entities),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        query = db.query(model).filter(model.tenant_id == tenant.id)
        if q:
            pattern = f"%{q}%"
            query = query.filter(or_(*[column.ilike(pattern) for column in _text_columns(model)]))

        total, items = pagination.apply(query.order_by(model.created_at))
        return list_schema(items=items, total=total, page=pagination.page, page_size=pagination.page_size)

    @router.get("/{record_id}", response_model=response_schema, name=f"get_{path}")
    async def get_record(
        record_id: str,
        current_user: TenantUser = Depends(manage_entities),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        return model.get_for_tenant(db, tenant.id, record_id, label)

    @router.post("", response_model=response_schema, status_code=status.HTTP_201_CREATED, name=f"create_{path}")
    async def create_record(
        data: create_schema,
        current_user: TenantUser = Depends(manage_entities),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        values = data.model_dump()
        _check_unique(db, model, tenant, values)

        record = model(tenant_id=tenant.id, **values)
        db.add(record)
        db.commit()
        db.refresh(record)

        logger.info(f"{label} created: {record.id} by {current_user.id}")
        return record

    @router.patch("/{record_id}", response_model=response_schema, name=f"update_{path}")
    async def update_record(
        record_id: str,
        data: update_schema,
        current_user: TenantUser = Depends(manage_entities),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        record = model.get_for_tenant(db, tenant.id, record_id, label)

        values = data.model_dump(exclude_unset=True)
        _check_unique(db, model, tenant, values, exclude_id=record.id)
        for field, value in values.items():
            setattr(record, field, value)

        db.commit()
        db.refresh(record)

        logger.info(f"{label} updated: {record.id} by {current_user.id}")
        return record

    @router.delete("/{record_id}", status_code=status.HTTP_204_NO_CONTENT, name=f"delete_{path}")
    async def delete_record(
        record_id: str,
        current_user: TenantUser = Depends(manage_entities),
        tenant: Tenant = Depends(get_current_tenant),
        db: Session = Depends(get_db)
    ):
        record = model.get_for_tenant(db, tenant.id, record_id, label)
        db.delete(record)
        db.commit()

        logger.info(f"{label} deleted: {record_id} by {current_user.id}")
        return None

    return router


routers = [entity_router(path, model) for path, model in ENTITIES.items()]
