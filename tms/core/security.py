"""
Credentials for TMS staff accounts.

Passwords of tenant users are stored as bcrypt hashes. A successful
login returns a bearer JWT whose claims name the user (sub), the tenant
that issued it and the user's email. The tenant middleware resolves the
tenant from the request host or headers, and deps.get_current_user
refuses a token whose tenant_id differs, so a warehouse clerk of one
operator cannot reach another operator's bookings or stock.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
from tms.config import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """bcrypt hash for a new or changed user password."""
    return pwd_context.hash(password)


def user_token_claims(user) -> Dict[str, Any]:
    """Claims identifying a tenant user inside an access token."""
    return {"sub": user.id, "tenant_id": user.tenant_id, "email": user.email}


def create_access_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign an access token for the given claims.

    Adds exp (ACCESS_TOKEN_EXPIRE_MINUTES unless expires_delta is given)
    and iat.
    """
    issued_at = datetime.utcnow()
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    payload = dict(claims)
    payload.update({"exp": issued_at + lifetime, "iat": issued_at})
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Claims of a valid token; None when the signature or expiry fails."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
