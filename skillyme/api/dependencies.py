"""
FastAPI Dependencies - Student authentication and service wiring.
"""

from dataclasses import dataclass

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from structlog import get_logger

from skillyme.config import settings
from skillyme.services.notifications import EmailClient, PaymentNotifier
from skillyme.services.payment_verifier import PaymentVerifier, SimulatedMpesaVerifier

logger = get_logger(__name__)

# ============================================================================
# Student JWT Authentication
# ============================================================================


@dataclass
class StudentIdentity:
    """Authenticated student from a platform JWT."""

    user_id: int
    email: str | None = None


# Bearer token scheme for JWT auth
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> StudentIdentity:
    """
    Validate the platform JWT carried as `Authorization: Bearer <token>`.

    The `sub` claim is the student's numeric user id.

    Raises:
        HTTPException 401 if the token is missing, invalid or expired
    """
    if credentials is None:
        raise _unauthorized("Authorization header required")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
        )
    except jwt.ExpiredSignatureError:
        logger.warning("student_token_expired")
        raise _unauthorized("Token has expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("student_token_invalid", error=str(e))
        raise _unauthorized("Invalid token") from None

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        logger.warning("student_token_invalid_subject")
        raise _unauthorized("Invalid token payload") from None

    email = payload.get("email")
    return StudentIdentity(user_id=user_id, email=email if isinstance(email, str) else None)


# ============================================================================
# Service wiring
# ============================================================================


def get_payment_verifier() -> PaymentVerifier:
    """Verifier used for new submissions."""
    return SimulatedMpesaVerifier(delay_seconds=settings.mpesa_verification_delay_seconds)


def get_notifier() -> PaymentNotifier:
    """Notifier backed by the configured email provider."""
    return PaymentNotifier(EmailClient())
