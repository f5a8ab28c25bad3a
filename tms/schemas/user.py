"""
User Schemas

Request/response models for tenant users and roles.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional, Dict
from datetime import datetime


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    full_name: Optional[str] = None
    username: Optional[str] = Field(None, max_length=100)
    phone_mobile: Optional[str] = None
    position: Optional[str] = None


class UserCreate(UserBase):
    """Schema for creating a new user."""
    password: str = Field(..., min_length=8, max_length=100)
    role_id: Optional[str] = None


class UserUpdate(BaseModel):
    """Schema for updating a user. All fields optional."""
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    username: Optional[str] = Field(None, max_length=100)
    phone_mobile: Optional[str] = None
    position: Optional[str] = None
    password: Optional[str] = Field(None, min_length=8, max_length=100)
    role_id: Optional[str] = None
    is_active: Optional[bool] = None


class UserResponse(UserBase):
    """User response schema (excludes sensitive data)."""
    id: str
    tenant_id: str
    role_id: Optional[str]
    is_active: bool
    created_at: datetime
    last_login_at: Optional[datetime]

    class Config:
        from_attributes = True  # Allows creating from ORM models


class UserListResponse(BaseModel):
    """Paginated list of users."""
    users: list[UserResponse]
    total: int
    page: int
    page_size: int


class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    # permission name -> granted; see tms.core.permissions
    permissions: Dict[str, bool] = {}


class RoleCreate(RoleBase):
    pass


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[Dict[str, bool]] = None
    is_active: Optional[bool] = None


class RoleResponse(BaseModel):
    id: str
    tenant_id: str
    name: str
    description: Optional[str]
    is_system_role: bool
    is_active: bool
    # Stored values are returned as-is, including non-boolean ones
    permissions: dict
    created_at: datetime

    class Config:
        from_attributes = True


class RoleListResponse(BaseModel):
    roles: list[RoleResponse]
    total: int
