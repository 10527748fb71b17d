"""
Admin authentication routes.

Email/password login for dashboard operators; the issued JWT is returned in
the body and set as the `admin_token` cookie.
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.api.admin_dependencies import get_admin_auth_service, get_current_admin
from skillyme.config import get_settings
from skillyme.db.models import Admin
from skillyme.db.session import get_write_db
from skillyme.exceptions import AuthenticationError
from skillyme.models.api import (
    AdminLoginData,
    AdminLoginRequest,
    AdminLoginResponse,
    AdminProfile,
    MessageResponse,
)
from skillyme.services.admin_auth import AdminAuthService

logger = get_logger(__name__)
router = APIRouter(prefix="/api/admin/auth", tags=["admin-auth"])


def _profile(admin: Admin) -> AdminProfile:
    return AdminProfile(id=admin.id, email=admin.email, name=admin.name, role=admin.role)


@router.post("/login", response_model=AdminLoginResponse)
async def admin_login(
    request: AdminLoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_write_db),
    auth_service: AdminAuthService = Depends(get_admin_auth_service),
) -> AdminLoginResponse:
    """Exchange admin credentials for a JWT."""
    try:
        admin = await auth_service.authenticate(db, request.email, request.password)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
        ) from exc

    token = auth_service.create_jwt_token(admin)

    settings = get_settings()
    response.set_cookie(
        key="admin_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.frontend_url.startswith("https"),
        max_age=settings.admin_jwt_expire_hours * 3600,
    )

    return AdminLoginResponse(
        data=AdminLoginData(access_token=token, admin=_profile(admin)),
    )


@router.get("/me", response_model=AdminProfile)
async def get_current_admin_info(
    admin: Admin = Depends(get_current_admin),
) -> AdminProfile:
    """Get current admin information."""
    return _profile(admin)


@router.post("/logout", response_model=MessageResponse)
async def admin_logout(response: Response) -> MessageResponse:
    """Clear the admin cookie."""
    response.delete_cookie(key="admin_token")
    logger.info("admin_logout")
    return MessageResponse(success=True, message="Logged out successfully")
