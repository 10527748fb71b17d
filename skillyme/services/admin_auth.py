"""
Admin authentication service.

Dashboard operators sign in with email and password (Argon2id hashes in the
admins table) and receive an HS256 JWT for the admin API.
"""

from datetime import UTC, datetime, timedelta

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.db.models import Admin
from skillyme.exceptions import AuthenticationError

logger = get_logger(__name__)


class AdminAuthService:
    """Admin authentication service."""

    def __init__(
        self,
        jwt_secret: str,
        jwt_algorithm: str = "HS256",
        jwt_expire_hours: int = 24,
    ):
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm
        self.jwt_expire_hours = jwt_expire_hours
        self.password_hasher = PasswordHasher()

    def hash_password(self, password: str) -> str:
        """Hash a password for storage using Argon2id."""
        return self.password_hasher.hash(password)

    def verify_password(self, password_hash: str, password: str) -> bool:
        """Check a password against a stored hash."""
        try:
            return self.password_hasher.verify(password_hash, password)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            logger.warning("admin_password_hash_invalid", error=str(e))
            return False

    async def authenticate(self, db: AsyncSession, email: str, password: str) -> Admin:
        """
        Verify credentials and record the login.

        Raises:
            AuthenticationError: Unknown email, wrong password or inactive admin
        """
        stmt = select(Admin).where(func.lower(Admin.email) == email.strip().lower())
        result = await db.execute(stmt)
        admin = result.scalar_one_or_none()

        if admin is None or not self.verify_password(admin.password_hash, password):
            logger.warning("admin_login_failed", email=email)
            raise AuthenticationError("Invalid email or password")

        if not admin.is_active:
            logger.warning("inactive_admin_login_attempt", email=admin.email)
            raise AuthenticationError("Admin account is deactivated")

        admin.last_login_at = datetime.now(UTC)
        await db.commit()

        logger.info("admin_login_success", admin_id=admin.id, email=admin.email, role=admin.role)
        return admin

    def create_jwt_token(self, admin: Admin) -> str:
        """Create JWT token for admin user."""
        now = datetime.now(UTC)
        payload = {
            "sub": str(admin.id),
            "email": admin.email,
            "role": admin.role,
            "iat": now,
            "exp": now + timedelta(hours=self.jwt_expire_hours),
        }

        return jwt.encode(payload, self.jwt_secret, algorithm=self.jwt_algorithm)

    def verify_jwt_token(self, token: str) -> dict[str, str | int] | None:
        """Verify JWT token and return payload."""
        try:
            payload: dict[str, str | int] = jwt.decode(
                token, self.jwt_secret, algorithms=[self.jwt_algorithm]
            )
            return payload
        except jwt.ExpiredSignatureError:
            logger.warning("jwt_token_expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("jwt_token_invalid", error=str(e))
            return None

    async def get_admin_by_id(self, db: AsyncSession, admin_id: int) -> Admin | None:
        """Get admin user by ID."""
        stmt = select(Admin).where(Admin.id == admin_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
