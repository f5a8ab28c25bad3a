"""
Custom Exceptions

Centralized exception definitions for better error handling.
FastAPI converts these to HTTP responses with a {"detail": ...} body.
"""
from fastapi import HTTPException, status


class TenantNotFoundError(HTTPException):
    """Raised when tenant cannot be found."""

    def __init__(self, tenant_identifier: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tenant not found: {tenant_identifier}" if tenant_identifier else "Tenant not found"
        )


class NotFoundError(HTTPException):
    """
    Raised when a tenant-scoped record cannot be found.

    Records belonging to another tenant are reported the same way,
    so ids from other tenants reveal nothing.
    """

    def __init__(self, entity: str = "Record", record_id: str = ""):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{entity} not found: {record_id}" if record_id else f"{entity} not found"
        )


class AuthenticationError(HTTPException):
    """Raised when authentication fails."""

    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class TenantIsolationError(HTTPException):
    """
    Raised when a tenant isolation violation is detected.

    This is a security error and is logged as one.
    """

    def __init__(self, detail: str = "Tenant isolation violation"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )


class RateLimitExceeded(HTTPException):
    """Raised when rate limit is exceeded."""

    def __init__(self, retry_after: int = 60):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers={"Retry-After": str(retry_after)}
        )


class InvalidInputError(HTTPException):
    """Raised when input validation fails."""

    def __init__(self, detail: str = "Invalid input"):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail
        )


class InvalidStatusTransitionError(InvalidInputError):
    """Raised when a status change is not in the transition table."""

    def __init__(self, current_status: str, new_status: str, reason: str = ""):
        detail = f"Invalid status transition from {current_status} to {new_status}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail=detail)
        self.current_status = current_status
        self.new_status = new_status


class ConflictError(HTTPException):
    """Raised when a unique value is already taken within the tenant."""

    def __init__(self, detail: str = "Record already exists"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail
        )
