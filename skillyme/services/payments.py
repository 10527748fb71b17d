"""
Payment Service - M-Pesa submissions and the payment record store.

Creation is idempotent on (user_id, session_id, mpesa_code): resubmitting the
same confirmation message returns the record created the first time.
"""

import time
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import Row, Select, case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.config import settings
from skillyme.db.models import MentorshipSession, Payment, User
from skillyme.exceptions import (
    CodeExtractionError,
    DatabaseError,
    InvalidPaymentCodeError,
    SessionNotFoundError,
)
from skillyme.models.api import PaymentStatus
from skillyme.models.domain import (
    DailyRevenuePoint,
    PaymentData,
    PaymentDetail,
    PaymentStats,
    PaymentSubmission,
    SubmissionResult,
)
from skillyme.observability.metrics import metrics
from skillyme.observability.tracing import trace_operation
from skillyme.services.code_extractor import extract_mpesa_code
from skillyme.services.payment_status import initial_status, parse_status
from skillyme.services.payment_verifier import PaymentVerifier

logger = get_logger(__name__)

STATS_REVENUE_WINDOW_DAYS = 30


def _utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


def _ksh(amount: Decimal) -> str:
    if amount == amount.to_integral_value():
        return f"KSh {amount:.0f}"
    return f"KSh {amount:.2f}"


def _to_payment_data(payment: Payment) -> PaymentData:
    return PaymentData(
        payment_id=payment.payment_id,
        user_id=payment.user_id,
        session_id=payment.session_id,
        mpesa_code=payment.mpesa_code,
        expected_amount=payment.expected_amount,
        actual_amount=payment.actual_amount,
        amount_mismatch=payment.amount_mismatch,
        status=PaymentStatus(payment.status),
        admin_notes=payment.admin_notes,
        full_message=payment.full_mpesa_message,
        submitted_at=payment.submitted_at,
        updated_at=payment.updated_at,
    )


class PaymentService:
    """Payment ingestion, status updates and reporting."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize payment service with database session."""
        self.session = session

    # ========================================================================
    # Ingestion
    # ========================================================================

    async def submit_payment(
        self,
        user_id: int,
        session_id: int | None,
        full_message: str,
        claimed_amount: Decimal,
        verifier: PaymentVerifier,
    ) -> SubmissionResult:
        """
        Turn a pasted M-Pesa confirmation into a payment record.

        The expected amount is the session price when the session has one,
        otherwise the amount the student claims to have paid. The actual amount
        is the verifier's figure, or the claim when the verifier only confirms
        the price. A payment is a mismatch exactly when actual and expected
        differ; mismatches are created as `amount_mismatch`, never as `pending`.

        Raises:
            CodeExtractionError: No transaction code in the message
            SessionNotFoundError: Unknown session
            InvalidPaymentCodeError: Verifier rejected the code
        """
        mpesa_code = extract_mpesa_code(full_message)
        if mpesa_code is None:
            metrics.record_submission("no_code")
            logger.warning("mpesa_code_not_found", user_id=user_id)
            raise CodeExtractionError()

        resolved_session_id = session_id or settings.default_session_id
        mentorship = await self.session.get(MentorshipSession, resolved_session_id)
        if mentorship is None:
            metrics.record_submission("unknown_session")
            raise SessionNotFoundError(resolved_session_id)

        if mentorship.price is not None and mentorship.price > 0:
            expected_amount = Decimal(mentorship.price)
        else:
            expected_amount = claimed_amount

        started = time.perf_counter()
        with trace_operation(
            "mpesa_verification", mpesa_code=mpesa_code, session_id=resolved_session_id
        ) as span:
            verification = await verifier.verify(mpesa_code, expected_amount)
            span.set_attribute("amount_match", verification.amount_match)
        metrics.record_verification(time.perf_counter() - started)

        if not verification.is_valid:
            metrics.record_submission("invalid_code")
            logger.warning("mpesa_code_rejected", user_id=user_id, mpesa_code=mpesa_code)
            raise InvalidPaymentCodeError(mpesa_code)

        actual_amount = verification.actual_amount
        if verification.amount_match and claimed_amount != expected_amount:
            # No amount evidence beyond the price; record what the student says they paid
            actual_amount = claimed_amount
        amount_mismatch = actual_amount != expected_amount

        payment = await self.create_payment(
            PaymentSubmission(
                user_id=user_id,
                session_id=resolved_session_id,
                mpesa_code=mpesa_code,
                expected_amount=expected_amount,
                actual_amount=actual_amount,
                amount_mismatch=amount_mismatch,
                full_message=full_message,
            )
        )

        if payment.amount_mismatch:
            message = (
                "M-Pesa code submitted but amount mismatch detected. "
                f"Expected: {_ksh(payment.expected_amount)}, "
                f"Actual: {_ksh(payment.actual_amount)}. Admin will review."
            )
        else:
            message = "M-Pesa code submitted successfully"

        metrics.record_submission("mismatch" if payment.amount_mismatch else "accepted")
        return SubmissionResult(
            payment=payment,
            mpesa_code=payment.mpesa_code,
            amount_paid=payment.actual_amount,
            amount_match=not payment.amount_mismatch,
            message=message,
        )

    async def _find_payment(self, user_id: int, session_id: int, mpesa_code: str) -> Payment | None:
        stmt = select(Payment).where(
            Payment.user_id == user_id,
            Payment.session_id == session_id,
            Payment.mpesa_code == mpesa_code,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_payment(self, submission: PaymentSubmission) -> PaymentData:
        """
        Create a payment, or return the existing one for the same submission.

        A concurrent identical insert surfaces as an IntegrityError on the
        unique constraint; the winner's row is read back and returned.
        """
        existing = await self._find_payment(*submission.key)
        if existing is not None:
            logger.info(
                "payment_submission_duplicate",
                payment_id=existing.payment_id,
                user_id=submission.user_id,
                session_id=submission.session_id,
            )
            return _to_payment_data(existing)

        now = _utc_now()
        payment = Payment(
            user_id=submission.user_id,
            session_id=submission.session_id,
            mpesa_code=submission.mpesa_code,
            expected_amount=submission.expected_amount,
            actual_amount=submission.actual_amount,
            amount_mismatch=submission.amount_mismatch,
            full_mpesa_message=submission.full_message,
            status=initial_status(submission.amount_mismatch).value,
            submitted_at=now,
            updated_at=now,
        )
        self.session.add(payment)

        try:
            await self.session.flush()
            await self.session.commit()
        except IntegrityError as e:
            logger.warning(
                "payment_creation_integrity_error",
                error=str(e),
                user_id=submission.user_id,
                session_id=submission.session_id,
            )
            await self.session.rollback()
            existing = await self._find_payment(*submission.key)
            if existing is None:
                raise DatabaseError(f"Payment creation failed: {e}") from e
            return _to_payment_data(existing)

        logger.info(
            "payment_submitted",
            payment_id=payment.payment_id,
            user_id=payment.user_id,
            session_id=payment.session_id,
            status=payment.status,
            amount_mismatch=payment.amount_mismatch,
        )
        return _to_payment_data(payment)

    # ========================================================================
    # Status updates
    # ========================================================================

    async def update_status(
        self,
        payment_id: int,
        new_status: str | PaymentStatus,
        admin_notes: str | None = None,
    ) -> bool:
        """
        Set a payment's status and stamp updated_at.

        Returns:
            False if the payment does not exist

        Raises:
            InvalidPaymentStatusError: If new_status is not a payment status
        """
        target = parse_status(new_status)

        payment = await self.session.get(Payment, payment_id)
        if payment is None:
            return False

        previous = PaymentStatus(payment.status)

        payment.status = target.value
        if admin_notes is not None:
            payment.admin_notes = admin_notes
        payment.updated_at = _utc_now()

        await self.session.flush()
        await self.session.commit()

        metrics.record_status_transition(target.value)
        logger.info(
            "payment_status_updated",
            payment_id=payment_id,
            previous_status=previous.value,
            status=target.value,
        )
        return True

    async def bulk_update_status(
        self,
        payment_ids: list[int],
        new_status: str | PaymentStatus,
        admin_notes: str | None = None,
    ) -> list[int]:
        """
        Set the same status on many payments in one statement.

        Unknown ids are skipped.

        Returns:
            Ids that were updated, ascending
        """
        target = parse_status(new_status)
        unique_ids = sorted(set(payment_ids))
        if not unique_ids:
            return []

        values: dict[str, object] = {"status": target.value, "updated_at": _utc_now()}
        if admin_notes is not None:
            values["admin_notes"] = admin_notes

        stmt = (
            update(Payment)
            .where(Payment.payment_id.in_(unique_ids))
            .values(**values)
            .returning(Payment.payment_id)
        )
        result = await self.session.execute(stmt)
        updated_ids = sorted(result.scalars().all())
        await self.session.commit()

        for _ in updated_ids:
            metrics.record_status_transition(target.value)
        logger.info(
            "payment_status_bulk_updated",
            status=target.value,
            requested=len(unique_ids),
            updated=len(updated_ids),
        )
        return updated_ids

    # ========================================================================
    # Queries
    # ========================================================================

    def _detail_query(self) -> Select[Any]:
        return (
            select(
                Payment,
                User.name,
                User.email,
                MentorshipSession.title,
                MentorshipSession.price,
                MentorshipSession.google_meet_link,
            )
            .outerjoin(User, User.id == Payment.user_id)
            .outerjoin(MentorshipSession, MentorshipSession.id == Payment.session_id)
        )

    @staticmethod
    def _to_detail(row: Row[Any]) -> PaymentDetail:
        payment, user_name, user_email, title, price, meet_link = row
        return PaymentDetail(
            payment=_to_payment_data(payment),
            user_name=user_name,
            user_email=user_email,
            session_title=title,
            session_price=price,
            google_meet_link=meet_link,
        )

    async def get_payment(self, payment_id: int) -> PaymentDetail | None:
        """Payment with its user and session, or None."""
        stmt = self._detail_query().where(Payment.payment_id == payment_id)
        result = await self.session.execute(stmt)
        row = result.first()
        return self._to_detail(row) if row is not None else None

    async def list_payments(
        self,
        page: int = 1,
        limit: int = 20,
        status: PaymentStatus | None = None,
        session_id: int | None = None,
        user_id: int | None = None,
        search: str | None = None,
    ) -> tuple[list[PaymentDetail], int]:
        """
        Page through payments, newest first.

        `search` matches the M-Pesa code, the user's name or the user's email.

        Returns:
            (page of payments, total matching)
        """
        stmt = self._detail_query()

        if status is not None:
            stmt = stmt.where(Payment.status == status.value)
        if session_id is not None:
            stmt = stmt.where(Payment.session_id == session_id)
        if user_id is not None:
            stmt = stmt.where(Payment.user_id == user_id)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Payment.mpesa_code.ilike(pattern),
                    User.name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )

        count_stmt = select(func.count()).select_from(stmt.subquery())
        count_result = await self.session.execute(count_stmt)
        total = count_result.scalar_one()

        offset = (page - 1) * limit
        stmt = stmt.order_by(Payment.submitted_at.desc()).offset(offset).limit(limit)
        result = await self.session.execute(stmt)

        return [self._to_detail(row) for row in result.all()], total

    async def get_stats(self, now: datetime | None = None) -> PaymentStats:
        """Totals, revenue and the last 30 days of paid revenue."""
        now = now or _utc_now()
        paid = PaymentStatus.PAID.value
        pending = PaymentStatus.PENDING.value

        status_stmt = select(Payment.status, func.count(Payment.payment_id)).group_by(
            Payment.status
        )
        status_result = await self.session.execute(status_stmt)
        status_counts = {str(row[0]): int(row[1]) for row in status_result.all()}

        totals_stmt = select(
            func.count(Payment.payment_id),
            func.coalesce(func.sum(case((Payment.amount_mismatch.is_(True), 1), else_=0)), 0),
            func.coalesce(
                func.sum(case((Payment.status == paid, Payment.actual_amount), else_=0)), 0
            ),
            func.coalesce(func.sum(Payment.expected_amount), 0),
            func.coalesce(
                func.sum(case((Payment.status == pending, Payment.expected_amount), else_=0)), 0
            ),
        )
        totals_result = await self.session.execute(totals_stmt)
        total, mismatched, total_revenue, expected_revenue, pending_revenue = totals_result.one()

        day = func.date_trunc("day", Payment.submitted_at)
        daily_stmt = (
            select(day.label("date"), func.sum(Payment.actual_amount).label("revenue"))
            .where(
                Payment.status == paid,
                Payment.submitted_at >= now - timedelta(days=STATS_REVENUE_WINDOW_DAYS),
            )
            .group_by(day)
            .order_by(day)
        )
        daily_result = await self.session.execute(daily_stmt)
        daily_revenue = [
            DailyRevenuePoint(date=row.date.date().isoformat(), revenue=Decimal(row.revenue or 0))
            for row in daily_result.all()
        ]

        return PaymentStats(
            total_payments=int(total or 0),
            paid_payments=status_counts.get(paid, 0),
            pending_payments=status_counts.get(pending, 0),
            failed_payments=status_counts.get(PaymentStatus.FAILED.value, 0),
            mismatch_payments=int(mismatched or 0),
            total_revenue=Decimal(total_revenue or 0),
            expected_revenue=Decimal(expected_revenue or 0),
            pending_revenue=Decimal(pending_revenue or 0),
            status_counts=status_counts,
            daily_revenue=daily_revenue,
        )
