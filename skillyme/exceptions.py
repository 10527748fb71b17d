"""
Exception Classes - Strongly typed exception hierarchy.

Every exception carries typed attributes so route handlers can map it to an
HTTP response without parsing messages.
"""


class PaymentError(Exception):
    """Base exception for all payment workflow errors."""

    pass


class CodeExtractionError(PaymentError):
    """Raised when no transaction code can be found in an M-Pesa message."""

    def __init__(self) -> None:
        super().__init__(
            "Could not extract M-Pesa code from message. "
            "Please ensure the message contains a valid transaction code."
        )


class InvalidPaymentCodeError(PaymentError):
    """Raised when the verifier rejects the format of an M-Pesa code."""

    def __init__(self, mpesa_code: str) -> None:
        self.mpesa_code = mpesa_code
        super().__init__("Invalid M-Pesa code format")


class InvalidPaymentStatusError(PaymentError):
    """Raised when a status outside the payment status set is requested."""

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(
            "Invalid payment status. Must be: pending, paid, failed, or amount_mismatch"
        )


class PaymentNotFoundError(PaymentError):
    """Raised when a payment id does not exist."""

    def __init__(self, payment_id: int) -> None:
        self.payment_id = payment_id
        super().__init__(f"Payment not found: {payment_id}")


class SessionNotFoundError(PaymentError):
    """Raised when a mentorship session id does not exist."""

    def __init__(self, session_id: int) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class PaymentVerificationError(PaymentError):
    """Raised when the verification backend itself fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Payment verification failed: {message}")


class AccessGrantError(PaymentError):
    """Raised when a secure access token cannot be issued."""

    def __init__(self, user_id: int, session_id: int, message: str) -> None:
        self.user_id = user_id
        self.session_id = session_id
        self.message = message
        super().__init__(
            f"Could not grant access for user {user_id} on session {session_id}: {message}"
        )


class NotificationError(PaymentError):
    """Raised when the email provider rejects or fails a send."""

    def __init__(self, recipient: str, message: str) -> None:
        self.recipient = recipient
        self.message = message
        super().__init__(f"Notification to {recipient} failed: {message}")


class DatabaseError(PaymentError):
    """Raised when database operation fails unexpectedly."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Database error: {message}")


class AuthenticationError(PaymentError):
    """Raised when authentication fails (invalid token, invalid credentials)."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Authentication failed: {message}")
