"""Token issuing and verification for admin sessions."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from routeadmin.config import settings
from routeadmin.database import AdminDB, DatabaseManager, get_db_manager
from routeadmin.errors import AuthenticationError

security = HTTPBearer(auto_error=False)


def _secret() -> str:
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET environment variable is not set")
    return settings.JWT_SECRET


def create_access_token(admin_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT access token for an admin.

    Args:
        admin_id: Id stored in the ``sub`` claim
        expires_delta: Optional lifetime, defaults to ACCESS_TOKEN_EXPIRE_HOURS

    Returns:
        Encoded JWT token as string
    """
    lifetime = expires_delta or timedelta(hours=settings.ACCESS_TOKEN_EXPIRE_HOURS)
    payload = {
        "sub": str(admin_id),
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(payload, _secret(), algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> int:
    """
    Decode a token and return the admin id it was issued for.

    Raises:
        AuthenticationError: the token is invalid or expired
    """
    try:
        payload = jwt.decode(token, _secret(), algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise AuthenticationError("Invalid authentication credentials")

    subject = payload.get("sub")
    if subject is None or not str(subject).isdigit():
        raise AuthenticationError("Invalid authentication credentials")
    return int(subject)


def get_db() -> DatabaseManager:
    """Dependency injection for the route store."""
    return get_db_manager()


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: DatabaseManager = Depends(get_db),
) -> AdminDB:
    """Dependency returning the signed-in admin, or failing with 401."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    admin_id = verify_token(credentials.credentials)
    admin = db.get_admin(admin_id)
    if admin is None:
        raise AuthenticationError("Admin not found")
    return admin
