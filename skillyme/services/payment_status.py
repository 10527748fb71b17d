"""
Payment Status Rules - Status parsing, transitions and notification choice.

Operators may move a payment between any two statuses. A move back out of
`paid` does not revoke an access grant already issued.
"""

from enum import Enum

from skillyme.exceptions import InvalidPaymentStatusError
from skillyme.models.api import PaymentStatus


class NotificationKind(str, Enum):
    """Which email a status change produces."""

    PAYMENT_CONFIRMED = "payment_confirmed"
    SUBMISSION_RECEIVED = "submission_received"
    STATUS_CHANGED = "status_changed"


def initial_status(amount_mismatch: bool) -> PaymentStatus:
    """Status a payment is created with."""
    return PaymentStatus.AMOUNT_MISMATCH if amount_mismatch else PaymentStatus.PENDING


def parse_status(value: str | PaymentStatus) -> PaymentStatus:
    """
    Coerce a raw value into a PaymentStatus.

    Raises:
        InvalidPaymentStatusError: If the value is not one of the four statuses
    """
    if isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidPaymentStatusError(str(value)) from None


def is_transition_allowed(current: PaymentStatus, target: PaymentStatus) -> bool:
    """Every status can be reached from every other status (including itself)."""
    return True


def notification_for(status: PaymentStatus) -> NotificationKind:
    """Pick the email sent after an operator sets `status`."""
    if status == PaymentStatus.PAID:
        return NotificationKind.PAYMENT_CONFIRMED
    if status == PaymentStatus.PENDING:
        return NotificationKind.SUBMISSION_RECEIVED
    return NotificationKind.STATUS_CHANGED
