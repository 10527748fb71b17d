"""
Database Models - SQLAlchemy ORM models with strict typing.

`users` and `sessions` are owned by the wider Skillyme platform; only the
columns the payment workflow reads are mapped here.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class User(Base):
    """ORM model for the platform's users table (students)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<User(id={self.id}, email={self.email})>"


class MentorshipSession(Base):
    """
    ORM model for the platform's sessions table.

    The price is the expected amount of every payment for the session; the
    meeting link is only released through a secure access grant.
    """

    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    google_meet_link: Mapped[str | None] = mapped_column(String(512), nullable=True)
    recruiter: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<MentorshipSession(id={self.id}, title={self.title}, price={self.price})>"


class Admin(Base):
    """ORM model for admins table (dashboard operators)."""

    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="viewer")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'viewer')", name="ck_admins_role"),
        Index("idx_admins_email", "email"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return f"<Admin(id={self.id}, email={self.email}, role={self.role})>"


class Payment(Base):
    """
    ORM model for payments table.

    One row per (user, session, M-Pesa code). Rows are never deleted; only
    status, admin_notes and updated_at change after creation.
    """

    __tablename__ = "payments"

    payment_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sessions.id", ondelete="RESTRICT"), nullable=False
    )

    mpesa_code: Mapped[str] = mapped_column(String(20), nullable=False)

    # "amount" is the expected amount (session price at submission time)
    expected_amount: Mapped[Decimal] = mapped_column("amount", Numeric(10, 2), nullable=False)
    actual_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    amount_mismatch: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Retained for audit and manual review
    full_mpesa_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'paid', 'failed', 'amount_mismatch')",
            name="ck_payments_status",
        ),
        CheckConstraint("length(mpesa_code) BETWEEN 6 AND 20", name="ck_payments_code_length"),
        UniqueConstraint("user_id", "session_id", "mpesa_code", name="uq_payment_submission"),
        Index("idx_payments_status", "status"),
        Index("idx_payments_session_id", "session_id"),
        Index("idx_payments_submitted_at", "submitted_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Payment(payment_id={self.payment_id}, user_id={self.user_id}, "
            f"session_id={self.session_id}, code={self.mpesa_code}, status={self.status})>"
        )


class SecureAccess(Base):
    """
    ORM model for secure_access table.

    Time-limited, email-gated join credentials. Revocation sets expires_at
    to the revocation time; rows are not deleted.
    """

    __tablename__ = "secure_access"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    session_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False
    )
    access_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_secure_access_user_session", "user_id", "session_id"),
        Index("idx_secure_access_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<SecureAccess(id={self.id}, user_id={self.user_id}, "
            f"session_id={self.session_id}, expires_at={self.expires_at})>"
        )
