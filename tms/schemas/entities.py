"""
Entity Settings Schemas

The settings tables are plain records, so their request/response models
are built from the SQLAlchemy columns instead of being written out one
by one.
"""
from pydantic import BaseModel, ConfigDict, create_model
from typing import Optional, Type, Tuple
from datetime import datetime

# Managed by the server, never accepted from clients
SERVER_COLUMNS = ("id", "tenant_id", "created_at", "updated_at")


def _column_default(column):
    if column.default is not None and column.default.is_scalar:
        return column.default.arg
    return None


def build_entity_schemas(model) -> Tuple[Type[BaseModel], Type[BaseModel], Type[BaseModel]]:
    """
    (Create, Update, Response) schemas for an entity model.

    Non-nullable columns without a default are required on create;
    every field is optional on update.
    """
    create_fields = {}
    update_fields = {}
    response_fields = {
        "id": (str, ...),
        "tenant_id": (str, ...),
        "created_at": (datetime, ...),
        "updated_at": (datetime, ...),
    }

    for column in model.__table__.columns:
        if column.name in SERVER_COLUMNS:
            continue
        python_type = column.type.python_type
        default = _column_default(column)

        if not column.nullable and default is None:
            create_fields[column.name] = (python_type, ...)
        else:
            create_fields[column.name] = (Optional[python_type], default)
        update_fields[column.name] = (Optional[python_type], None)
        response_fields[column.name] = (Optional[python_type], None)

    name = model.__name__
    create = create_model(f"{name}Create", **create_fields)
    update = create_model(f"{name}Update", **update_fields)
    response = create_model(
        f"{name}Response",
        __config__=ConfigDict(from_attributes=True),
        **response_fields
    )
    return create, update, response
