"""
Domain Models - Internal business logic models using dataclasses.

All data structures are immutable dataclasses passed between services.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from skillyme.models.api import PaymentStatus

MPESA_CODE_MIN_LENGTH = 6
MPESA_CODE_MAX_LENGTH = 20


@dataclass(frozen=True)
class PaymentSubmission:
    """Domain model for a payment before persistence - immutable intent."""

    user_id: int
    session_id: int
    mpesa_code: str
    expected_amount: Decimal
    actual_amount: Decimal
    amount_mismatch: bool
    full_message: str

    def __post_init__(self) -> None:
        """Validate submission constraints."""
        if not MPESA_CODE_MIN_LENGTH <= len(self.mpesa_code) <= MPESA_CODE_MAX_LENGTH:
            raise ValueError(f"Invalid M-Pesa code length: {self.mpesa_code!r}")
        if self.expected_amount <= 0:
            raise ValueError(f"Expected amount must be positive: {self.expected_amount}")
        if self.actual_amount < 0:
            raise ValueError(f"Actual amount cannot be negative: {self.actual_amount}")

    @property
    def key(self) -> tuple[int, int, str]:
        """Idempotency key of the submission."""
        return (self.user_id, self.session_id, self.mpesa_code)


@dataclass(frozen=True)
class PaymentData:
    """Immutable payment snapshot."""

    payment_id: int
    user_id: int
    session_id: int
    mpesa_code: str
    expected_amount: Decimal
    actual_amount: Decimal
    amount_mismatch: bool
    status: PaymentStatus
    admin_notes: str | None
    full_message: str | None
    submitted_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class PaymentDetail:
    """Payment joined with the user and session it belongs to."""

    payment: PaymentData
    user_name: str | None
    user_email: str | None
    session_title: str | None
    session_price: Decimal | None
    google_meet_link: str | None


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of an M-Pesa submission."""

    payment: PaymentData
    mpesa_code: str
    amount_paid: Decimal
    amount_match: bool
    message: str


@dataclass(frozen=True)
class DailyRevenuePoint:
    """Paid revenue on one day."""

    date: str
    revenue: Decimal


@dataclass(frozen=True)
class PaymentStats:
    """Aggregated payment statistics."""

    total_payments: int
    paid_payments: int
    pending_payments: int
    failed_payments: int
    mismatch_payments: int
    total_revenue: Decimal
    expected_revenue: Decimal
    pending_revenue: Decimal
    status_counts: dict[str, int] = field(default_factory=dict)
    daily_revenue: list[DailyRevenuePoint] = field(default_factory=list)

    @property
    def success_rate(self) -> int:
        """Share of payments marked paid, as a rounded percentage."""
        if self.total_payments == 0:
            return 0
        return round(self.paid_payments / self.total_payments * 100)


class AccessDenialReason(str, Enum):
    """Why a secure access verification failed."""

    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    EMAIL_MISMATCH = "email_mismatch"


@dataclass(frozen=True)
class AccessVerification:
    """Result of verifying a secure access token against an email."""

    valid: bool
    message: str
    reason: AccessDenialReason | None = None
    user_name: str | None = None
    user_email: str | None = None
    session_title: str | None = None
    google_meet_link: str | None = None
    expires_at: datetime | None = None


@dataclass(frozen=True)
class SessionAccessEntry:
    """A live grant on a session."""

    user_id: int
    name: str
    email: str
    granted_at: datetime
    expires_at: datetime

