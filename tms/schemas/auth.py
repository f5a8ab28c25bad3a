"""
Authentication Schemas

Request/response models for authentication endpoints.
"""
from pydantic import BaseModel, EmailStr, Field


class Token(BaseModel):
    """JWT token response."""
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    """Login request body."""
    email: EmailStr
    password: str = Field(..., min_length=8)

    # Must name the same tenant the request was routed to
    tenant_slug: str = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "email": "ops@acme-freight.com.au",
                "password": "securepassword123",
                "tenant_slug": "acme-freight"
            }
        }
