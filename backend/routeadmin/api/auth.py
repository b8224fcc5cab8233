"""Admin login endpoint."""

import logging

from fastapi import APIRouter, Depends

from routeadmin.database import DatabaseManager
from routeadmin.errors import AuthenticationError, BadRequestError
from routeadmin.models import AdminInfo, LoginRequest, LoginResponse
from routeadmin.security import create_access_token, get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, db: DatabaseManager = Depends(get_db)) -> LoginResponse:
    """Exchange admin email and password for a bearer token."""
    if not request.email.strip() or not request.password:
        raise BadRequestError("Email and password are required")

    admin = db.get_admin_by_email(request.email)
    if admin is None or not admin.verify_password(request.password):
        logger.info("Failed login for %s", request.email.strip().lower())
        raise AuthenticationError("Invalid credentials")

    return LoginResponse(
        token=create_access_token(admin.id),
        admin=AdminInfo(id=admin.id, email=admin.email),
    )
