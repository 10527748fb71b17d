"""
Admin authentication dependencies for protecting admin routes.

Provides FastAPI dependencies for JWT validation and role checking.
"""

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.config import get_settings
from skillyme.db.models import Admin
from skillyme.db.session import get_write_db
from skillyme.services.admin_auth import AdminAuthService

logger = get_logger(__name__)


def get_admin_auth_service() -> AdminAuthService:
    """Get admin auth service instance."""
    settings = get_settings()
    return AdminAuthService(
        jwt_secret=settings.jwt_secret,
        jwt_algorithm=settings.jwt_algorithm,
        jwt_expire_hours=settings.admin_jwt_expire_hours,
    )


async def get_current_admin(
    request: Request,
    authorization: str | None = Header(None),
    db: AsyncSession = Depends(get_write_db),
    auth_service: AdminAuthService = Depends(get_admin_auth_service),
) -> Admin:
    """
    Get current authenticated admin.

    Checks the Authorization header first, then the `admin_token` cookie.

    Raises:
        HTTPException(401): If no token provided or token is invalid
        HTTPException(403): If the admin account is deactivated
    """
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization.removeprefix("Bearer ")

    if not token:
        token = request.cookies.get("admin_token")

    if not token:
        logger.warning("admin_auth_no_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = auth_service.verify_jwt_token(token)
    if not payload:
        logger.warning("admin_auth_invalid_token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        admin_id = int(payload["sub"])
    except (ValueError, KeyError) as e:
        logger.warning("admin_auth_invalid_admin_id", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        ) from e

    admin = await auth_service.get_admin_by_id(db, admin_id)

    if not admin:
        logger.warning("admin_auth_admin_not_found", admin_id=admin_id)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin not found",
        )

    if not admin.is_active:
        logger.warning("admin_auth_admin_inactive", admin_id=admin_id, email=admin.email)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin account is deactivated",
        )

    logger.debug("admin_auth_success", admin_id=admin.id, role=admin.role)
    return admin


async def require_admin_role(
    admin: Admin = Depends(get_current_admin),
) -> Admin:
    """
    Require the admin role (viewers are read-only).

    Raises:
        HTTPException(403): If the caller is a viewer
    """
    if admin.role != "admin":
        logger.warning("admin_auth_insufficient_role", admin_id=admin.id, role=admin.role)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Admin role required. Your role: {admin.role} (read-only)",
        )

    return admin
