"""
Tests for payment status rules.
"""

import itertools

import pytest

from skillyme.exceptions import InvalidPaymentStatusError
from skillyme.models.api import PaymentStatus
from skillyme.services.payment_status import (
    NotificationKind,
    initial_status,
    is_transition_allowed,
    notification_for,
    parse_status,
)


class TestParseStatus:
    """Tests for parse_status."""

    @pytest.mark.parametrize("value", ["pending", "paid", "failed", "amount_mismatch"])
    def test_accepts_every_status(self, value: str) -> None:
        assert parse_status(value).value == value

    def test_enum_passes_through(self) -> None:
        assert parse_status(PaymentStatus.PAID) is PaymentStatus.PAID

    @pytest.mark.parametrize("value", ["refunded", "PAID", "", "paid "])
    def test_rejects_unknown_values(self, value: str) -> None:
        with pytest.raises(InvalidPaymentStatusError) as exc_info:
            parse_status(value)

        assert exc_info.value.status == value
        assert "pending, paid, failed, or amount_mismatch" in str(exc_info.value)


class TestInitialStatus:
    def test_matching_amount_starts_pending(self) -> None:
        assert initial_status(False) == PaymentStatus.PENDING

    def test_mismatch_starts_flagged(self) -> None:
        assert initial_status(True) == PaymentStatus.AMOUNT_MISMATCH


def test_every_transition_is_allowed() -> None:
    for current, target in itertools.product(PaymentStatus, repeat=2):
        assert is_transition_allowed(current, target) is True


@pytest.mark.parametrize(
    ("status", "kind"),
    [
        (PaymentStatus.PAID, NotificationKind.PAYMENT_CONFIRMED),
        (PaymentStatus.PENDING, NotificationKind.SUBMISSION_RECEIVED),
        (PaymentStatus.FAILED, NotificationKind.STATUS_CHANGED),
        (PaymentStatus.AMOUNT_MISMATCH, NotificationKind.STATUS_CHANGED),
    ],
)
def test_notification_for(status: PaymentStatus, kind: NotificationKind) -> None:
    assert notification_for(status) == kind
