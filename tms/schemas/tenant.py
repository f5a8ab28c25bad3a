"""
Tenant Schemas

Request/response models for tenant signup and company settings.
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from tms.models.tenant import TenantStatus


class CompanyDetails(BaseModel):
    abn: Optional[str] = Field(None, max_length=20)
    acn: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = None
    scac: Optional[str] = Field(None, max_length=10)
    phone: Optional[str] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = Field(None, min_length=2, max_length=2)


class TenantSignup(CompanyDetails):
    """
    Signup for a new company.

    Creates the tenant, its system Admin role and the first user.
    """
    company_name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    admin_email: EmailStr
    admin_password: str = Field(..., min_length=8, max_length=100)
    admin_full_name: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "company_name": "Acme Freight",
                "email": "accounts@acme-freight.com.au",
                "admin_email": "ops@acme-freight.com.au",
                "admin_password": "securepassword123",
                "country_code": "AU"
            }
        }


class TenantUpdate(CompanyDetails):
    """Schema for updating the current tenant. All fields optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    email: Optional[EmailStr] = None


class TenantResponse(CompanyDetails):
    id: str
    name: str
    slug: str
    subdomain: str
    status: TenantStatus
    is_active: bool
    email: str
    created_at: datetime

    class Config:
        from_attributes = True


class SignupResponse(BaseModel):
    tenant: TenantResponse
    user_id: str
    role_id: str
