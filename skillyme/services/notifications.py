"""
Payment Notifications - Plain-text transactional email to students.

Emails go out through the provider's HTTP API. Without an API key the message
is logged instead of sent, which is how local and test environments run.
Dispatch is best-effort: a failed email never fails the status change that
triggered it.
"""

import time
from dataclasses import dataclass
from typing import ClassVar

import httpx
from structlog import get_logger

from skillyme.config import settings
from skillyme.exceptions import NotificationError
from skillyme.models.api import PaymentStatus
from skillyme.observability.metrics import metrics
from skillyme.services.payment_status import NotificationKind

logger = get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    """A rendered email ready for the provider."""

    recipient: str
    recipient_name: str
    subject: str
    text: str
    status: PaymentStatus


class EmailClient:
    """Thin client for the transactional email HTTP API (Brevo-compatible)."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = (api_key if api_key is not None else settings.email_api_key).strip()
        self.api_url = api_url or settings.email_api_url
        self.timeout = timeout if timeout is not None else settings.email_timeout_seconds
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, message: EmailMessage) -> bool:
        """
        Send one email.

        Returns:
            True when the provider accepted the email, False when it was only
            logged because no provider is configured

        Raises:
            NotificationError: If the provider rejects the email or is unreachable
        """
        if not self.enabled:
            logger.info(
                "email_logged_not_sent",
                recipient=message.recipient,
                subject=message.subject,
                preview=message.text[:100],
            )
            return False

        payload = {
            "sender": {
                "name": settings.email_from_name,
                "email": settings.email_from_address,
            },
            "to": [{"email": message.recipient, "name": message.recipient_name or None}],
            "subject": message.subject,
            "textContent": message.text,
        }
        headers = {
            "accept": "application/json",
            "content-type": "application/json",
            "api-key": self.api_key,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(message.recipient, str(e)) from e

        if response.status_code not in (200, 201, 202):
            raise NotificationError(
                message.recipient,
                f"provider returned HTTP {response.status_code}",
            )

        logger.info(
            "email_sent",
            recipient=message.recipient,
            subject=message.subject,
            status_code=response.status_code,
        )
        return True


# ============================================================================
# Message bodies
# ============================================================================

_SIGN_OFF = "\n\nBest regards,\nThe Skillyme Team"


def _confirmed_body(name: str, session_title: str, link: str | None) -> str:
    lines = [
        f"Dear {name},",
        "",
        "Great news! Your payment has been confirmed and you now have access "
        f"to the {session_title} session.",
    ]
    if link:
        lines += ["", "Use the link below to join your session:", link]
    else:
        lines += ["", "Your join link will be shared with you before the session starts."]
    lines += ["", "We look forward to seeing you in the session!"]
    return "\n".join(lines) + _SIGN_OFF


def _received_body(name: str, session_title: str) -> str:
    return (
        f"Dear {name},\n\n"
        f"Thank you for registering for the {session_title} session. We have received "
        "your M-Pesa payment submission and are currently processing it.\n\n"
        "We shall get back to you shortly with the invite link once your payment "
        "is confirmed." + _SIGN_OFF
    )


def _failed_body(name: str, session_title: str) -> str:
    return (
        f"Dear {name},\n\n"
        f"We encountered an issue verifying your payment for the {session_title} session.\n\n"
        "Please reply to this email or contact our support team to resolve this issue "
        "and secure your session access." + _SIGN_OFF
    )


def _review_body(name: str, session_title: str) -> str:
    return (
        f"Dear {name},\n\n"
        f"Your payment for the {session_title} session is currently under review by our team.\n\n"
        "We'll notify you once the review is complete and your session access is "
        "confirmed. Thank you for your patience." + _SIGN_OFF
    )


class PaymentNotifier:
    """
    Build and dispatch payment status emails.

    Repeat emails for the same (recipient, status) inside the throttle window
    are dropped; the window is shared across instances.
    """

    # Key: (recipient, status), Value: monotonic time of the last dispatch
    _recent: ClassVar[dict[tuple[str, str], float]] = {}

    def __init__(self, email_client: EmailClient, throttle_seconds: int | None = None) -> None:
        self.email_client = email_client
        self.throttle_seconds = (
            throttle_seconds if throttle_seconds is not None else settings.email_throttle_seconds
        )

    @classmethod
    def reset_throttle(cls) -> None:
        """Forget every recent dispatch."""
        cls._recent.clear()

    def build(
        self,
        kind: NotificationKind,
        recipient: str,
        name: str,
        session_title: str,
        status: PaymentStatus,
        link: str | None = None,
    ) -> EmailMessage:
        """Render the email for a notification kind."""
        if kind == NotificationKind.PAYMENT_CONFIRMED:
            subject = f"Payment Confirmed - {session_title} Session Access Granted"
            text = _confirmed_body(name, session_title, link)
        elif kind == NotificationKind.SUBMISSION_RECEIVED:
            subject = f"Payment Submission Confirmation - {session_title}"
            text = _received_body(name, session_title)
        elif status == PaymentStatus.FAILED:
            subject = f"Payment Issue - {session_title} Session"
            text = _failed_body(name, session_title)
        else:
            subject = f"Payment Review Required - {session_title} Session"
            text = _review_body(name, session_title)

        return EmailMessage(
            recipient=recipient,
            recipient_name=name,
            subject=subject,
            text=text,
            status=status,
        )

    def _is_throttled(self, message: EmailMessage) -> bool:
        now = time.monotonic()
        cutoff = now - self.throttle_seconds

        for key, sent_at in list(PaymentNotifier._recent.items()):
            if sent_at <= cutoff:
                del PaymentNotifier._recent[key]

        key = (message.recipient.lower(), message.status.value)
        if key in PaymentNotifier._recent:
            return True

        PaymentNotifier._recent[key] = now
        return False

    async def dispatch(self, message: EmailMessage) -> bool:
        """
        Send a notification, swallowing every failure.

        Returns:
            True if the email was handed to the provider (or logged in
            development mode), False if it was throttled or failed
        """
        if self._is_throttled(message):
            metrics.record_notification("throttled")
            logger.info(
                "notification_throttled",
                recipient=message.recipient,
                status=message.status.value,
            )
            return False

        try:
            sent = await self.email_client.send(message)
        except Exception as e:
            metrics.record_notification("failed")
            logger.error(
                "notification_failed",
                recipient=message.recipient,
                subject=message.subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        metrics.record_notification("sent" if sent else "logged")
        return True
