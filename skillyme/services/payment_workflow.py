"""
Payment Workflow - Operator status changes and their side effects.

Order of operations for every status change:
1. Commit the new status
2. On `paid`, mint (or reuse) a secure access grant
3. Build the status email and hand it to the background dispatcher

Steps 2 and 3 can fail without undoing step 1.
"""

from dataclasses import dataclass

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.config import settings
from skillyme.exceptions import AccessGrantError, PaymentNotFoundError
from skillyme.models.api import PaymentStatus
from skillyme.models.domain import PaymentDetail
from skillyme.services.notifications import EmailMessage, PaymentNotifier
from skillyme.services.payment_status import notification_for, parse_status
from skillyme.services.payments import PaymentService
from skillyme.services.secure_access import SecureAccessService

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusChangeOutcome:
    """
    What happened after a status change was committed.

    `payment` is None when the side effects failed before the payment could
    be read back; the status change itself still stands.
    """

    payment_id: int
    payment: PaymentDetail | None
    access_granted: bool
    notification: EmailMessage | None


class PaymentWorkflow:
    """Apply operator status changes with grants and notifications."""

    def __init__(self, session: AsyncSession, notifier: PaymentNotifier) -> None:
        self.session = session
        self.payments = PaymentService(session)
        self.access = SecureAccessService(session)
        self.notifier = notifier

    async def change_status(
        self,
        payment_id: int,
        status: str | PaymentStatus,
        admin_notes: str | None = None,
        background_tasks: BackgroundTasks | None = None,
    ) -> StatusChangeOutcome:
        """
        Move one payment to `status`.

        Raises:
            InvalidPaymentStatusError: Unknown status value
            PaymentNotFoundError: Unknown payment id
        """
        target = parse_status(status)

        updated = await self.payments.update_status(payment_id, target, admin_notes)
        if not updated:
            raise PaymentNotFoundError(payment_id)

        return await self._run_side_effects(payment_id, target, background_tasks)

    async def bulk_change_status(
        self,
        payment_ids: list[int],
        status: str | PaymentStatus,
        admin_notes: str | None = None,
        background_tasks: BackgroundTasks | None = None,
    ) -> list[StatusChangeOutcome]:
        """Move many payments to `status`; each one gets the single-payment side effects."""
        target = parse_status(status)

        updated_ids = await self.payments.bulk_update_status(payment_ids, target, admin_notes)
        return [
            await self._run_side_effects(payment_id, target, background_tasks)
            for payment_id in updated_ids
        ]

    async def _run_side_effects(
        self,
        payment_id: int,
        status: PaymentStatus,
        background_tasks: BackgroundTasks | None,
    ) -> StatusChangeOutcome:
        try:
            return await self._after_commit(payment_id, status, background_tasks)
        except Exception as e:
            logger.error(
                "post_commit_side_effect_failed",
                payment_id=payment_id,
                status=status.value,
                error=str(e),
                exc_info=True,
            )
            # Leave the session usable for the next payment in a bulk update
            await self.session.rollback()
            return StatusChangeOutcome(
                payment_id=payment_id,
                payment=None,
                access_granted=False,
                notification=None,
            )

    async def _grant_link(self, detail: PaymentDetail) -> tuple[bool, str | None]:
        payment = detail.payment
        try:
            token = await self.access.create_secure_access(payment.user_id, payment.session_id)
        except (AccessGrantError, SQLAlchemyError) as e:
            logger.error(
                "access_grant_failed",
                payment_id=payment.payment_id,
                user_id=payment.user_id,
                session_id=payment.session_id,
                error=str(e),
            )
            # Fall back to the raw meeting link
            return False, detail.google_meet_link

        return True, settings.secure_access_link(token)

    async def _after_commit(
        self,
        payment_id: int,
        status: PaymentStatus,
        background_tasks: BackgroundTasks | None,
    ) -> StatusChangeOutcome:
        detail = await self.payments.get_payment(payment_id)
        if detail is None:
            raise PaymentNotFoundError(payment_id)

        access_granted = False
        link: str | None = None
        if status == PaymentStatus.PAID:
            access_granted, link = await self._grant_link(detail)

        message: EmailMessage | None = None
        if detail.user_email:
            message = self.notifier.build(
                notification_for(status),
                recipient=detail.user_email,
                name=detail.user_name or "Student",
                session_title=detail.session_title or "Skillyme",
                status=status,
                link=link,
            )
            if background_tasks is not None:
                background_tasks.add_task(self.notifier.dispatch, message)
        else:
            logger.warning("notification_skipped_no_email", payment_id=payment_id)

        return StatusChangeOutcome(
            payment_id=payment_id,
            payment=detail,
            access_granted=access_granted,
            notification=message,
        )
