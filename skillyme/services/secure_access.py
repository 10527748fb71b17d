"""
Secure Access Service - Time-limited, email-gated session join links.

A grant is minted when a payment is confirmed. Whoever holds the link and
knows the student's email can read the meeting URL; no bearer credential is
required. This keeps join links usable from a phone's mail client.
"""

import secrets
from datetime import UTC, datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.config import settings
from skillyme.db.models import MentorshipSession, SecureAccess, User
from skillyme.exceptions import AccessGrantError
from skillyme.models.domain import AccessDenialReason, AccessVerification, SessionAccessEntry
from skillyme.observability.metrics import metrics

logger = get_logger(__name__)

DENIAL_MESSAGES: dict[AccessDenialReason, str] = {
    AccessDenialReason.NOT_FOUND: "Invalid or expired access token",
    AccessDenialReason.EXPIRED: "Invalid or expired access token",
    AccessDenialReason.EMAIL_MISMATCH: "Access denied: email does not match this access link",
}


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    # Drivers without timezone support hand back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class SecureAccessService:
    """
    Issue, verify and revoke secure access grants.

    At most one live grant per (user, session) is handed out: minting reuses
    the newest unexpired token when there is one.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize secure access service with database session."""
        self.session = session

    @staticmethod
    def generate_token() -> str:
        """Opaque, URL-safe token with 256 bits of randomness."""
        return secrets.token_urlsafe(32)

    async def get_user_access_token(self, user_id: int, session_id: int) -> str | None:
        """Newest live token for the user on the session, if any."""
        stmt = (
            select(SecureAccess.access_token)
            .where(
                SecureAccess.user_id == user_id,
                SecureAccess.session_id == session_id,
                SecureAccess.expires_at > _utc_now(),
            )
            .order_by(SecureAccess.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_secure_access(self, user_id: int, session_id: int) -> str:
        """
        Return a live token for the user on the session, minting one if needed.

        Raises:
            AccessGrantError: If the grant cannot be stored
        """
        existing = await self.get_user_access_token(user_id, session_id)
        if existing is not None:
            metrics.record_access_grant("reused")
            logger.info("secure_access_reused", user_id=user_id, session_id=session_id)
            return existing

        now = _utc_now()
        grant = SecureAccess(
            user_id=user_id,
            session_id=session_id,
            access_token=self.generate_token(),
            created_at=now,
            expires_at=now + timedelta(days=settings.secure_access_ttl_days),
        )
        self.session.add(grant)

        try:
            await self.session.flush()
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "secure_access_create_failed",
                user_id=user_id,
                session_id=session_id,
                error=str(e),
            )
            raise AccessGrantError(user_id, session_id, str(e)) from e

        metrics.record_access_grant("minted")
        logger.info(
            "secure_access_granted",
            user_id=user_id,
            session_id=session_id,
            expires_at=grant.expires_at.isoformat(),
        )
        return grant.access_token

    async def verify_access_token(self, token: str, email: str) -> AccessVerification:
        """
        Check a join link against the email the visitor typed in.

        Never raises for a bad token: the result carries the reason instead.
        The expiry boundary is exclusive (expires_at == now is expired).
        """
        stmt = (
            select(SecureAccess, User, MentorshipSession)
            .join(User, User.id == SecureAccess.user_id)
            .join(MentorshipSession, MentorshipSession.id == SecureAccess.session_id)
            .where(SecureAccess.access_token == token)
        )
        result = await self.session.execute(stmt)
        row = result.first()

        if row is None:
            return self._deny(AccessDenialReason.NOT_FOUND, token)

        grant, user, mentorship = row
        expires_at = _as_utc(grant.expires_at)

        if not expires_at > _utc_now():
            return self._deny(AccessDenialReason.EXPIRED, token, user_id=user.id)

        if user.email.strip().lower() != email.strip().lower():
            return self._deny(AccessDenialReason.EMAIL_MISMATCH, token, user_id=user.id)

        metrics.record_access_verification("granted")
        logger.info(
            "secure_access_verified",
            user_id=user.id,
            session_id=mentorship.id,
        )
        return AccessVerification(
            valid=True,
            message="Access granted",
            user_name=user.name,
            user_email=user.email,
            session_title=mentorship.title,
            google_meet_link=mentorship.google_meet_link,
            expires_at=expires_at,
        )

    def _deny(
        self, reason: AccessDenialReason, token: str, user_id: int | None = None
    ) -> AccessVerification:
        metrics.record_access_verification(reason.value)
        # Masked by the logging pipeline
        logger.warning(
            "secure_access_denied", reason=reason.value, access_token=token, user_id=user_id
        )
        return AccessVerification(valid=False, message=DENIAL_MESSAGES[reason], reason=reason)

    async def get_session_access_list(self, session_id: int) -> list[SessionAccessEntry]:
        """Live grants on a session, newest first."""
        stmt = (
            select(SecureAccess, User)
            .join(User, User.id == SecureAccess.user_id)
            .where(
                SecureAccess.session_id == session_id,
                SecureAccess.expires_at > _utc_now(),
            )
            .order_by(SecureAccess.created_at.desc())
        )
        result = await self.session.execute(stmt)

        return [
            SessionAccessEntry(
                user_id=user.id,
                name=user.name,
                email=user.email,
                granted_at=grant.created_at,
                expires_at=grant.expires_at,
            )
            for grant, user in result.all()
        ]

    async def revoke_access(self, user_id: int, session_id: int) -> int:
        """
        Soft-revoke every grant of the user on the session.

        Rows are kept; their expiry is pulled back to now.

        Returns:
            Number of grants that were still live
        """
        now = _utc_now()
        stmt = (
            update(SecureAccess)
            .where(
                SecureAccess.user_id == user_id,
                SecureAccess.session_id == session_id,
                SecureAccess.expires_at > now,
            )
            .values(expires_at=now)
        )
        result = await self.session.execute(stmt)
        await self.session.commit()

        revoked = result.rowcount or 0  # type: ignore[attr-defined]
        logger.info(
            "secure_access_revoked",
            user_id=user_id,
            session_id=session_id,
            revoked=revoked,
        )
        return revoked
