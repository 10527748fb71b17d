"""
Tests for the exception hierarchy.
"""

import pytest

from skillyme.exceptions import (
    AccessGrantError,
    AuthenticationError,
    CodeExtractionError,
    DatabaseError,
    InvalidPaymentCodeError,
    InvalidPaymentStatusError,
    NotificationError,
    PaymentError,
    PaymentNotFoundError,
    PaymentVerificationError,
    SessionNotFoundError,
)


@pytest.mark.parametrize(
    "exc",
    [
        CodeExtractionError(),
        InvalidPaymentCodeError("AB12"),
        InvalidPaymentStatusError("refunded"),
        PaymentNotFoundError(101),
        SessionNotFoundError(3),
        PaymentVerificationError("timeout"),
        AccessGrantError(7, 3, "insert failed"),
        NotificationError("a@example.com", "HTTP 500"),
        DatabaseError("connection reset"),
        AuthenticationError("Invalid email or password"),
    ],
)
def test_all_errors_share_base(exc: PaymentError) -> None:
    assert isinstance(exc, PaymentError)


class TestMessages:
    def test_code_extraction(self) -> None:
        assert str(CodeExtractionError()).startswith("Could not extract M-Pesa code from message")

    def test_invalid_code(self) -> None:
        exc = InvalidPaymentCodeError("AB12")
        assert exc.mpesa_code == "AB12"
        assert str(exc) == "Invalid M-Pesa code format"

    def test_invalid_status_lists_choices(self) -> None:
        exc = InvalidPaymentStatusError("refunded")
        assert exc.status == "refunded"
        assert str(exc) == (
            "Invalid payment status. Must be: pending, paid, failed, or amount_mismatch"
        )

    def test_not_found_errors_carry_ids(self) -> None:
        assert PaymentNotFoundError(101).payment_id == 101
        assert SessionNotFoundError(3).session_id == 3

    def test_access_grant(self) -> None:
        exc = AccessGrantError(7, 3, "insert failed")
        assert (exc.user_id, exc.session_id, exc.message) == (7, 3, "insert failed")
        assert "user 7" in str(exc)

    def test_notification(self) -> None:
        exc = NotificationError("a@example.com", "HTTP 500")
        assert exc.recipient == "a@example.com"
        assert str(exc) == "Notification to a@example.com failed: HTTP 500"

    def test_authentication_keeps_bare_message(self) -> None:
        exc = AuthenticationError("Admin account is deactivated")
        assert exc.message == "Admin account is deactivated"
        assert str(exc) == "Authentication failed: Admin account is deactivated"
