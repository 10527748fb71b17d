"""
Tests for PaymentWorkflow.

The payment and access services are mocked; these tests cover how a committed
status change fans out into access grants and emails.
"""

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import BackgroundTasks
from sqlalchemy.exc import OperationalError

from skillyme.exceptions import AccessGrantError, InvalidPaymentStatusError, PaymentNotFoundError
from skillyme.models.api import PaymentStatus
from skillyme.models.domain import PaymentData, PaymentDetail
from skillyme.services.notifications import PaymentNotifier
from skillyme.services.payment_workflow import PaymentWorkflow

MEET_LINK = "https://meet.google.com/abc-defg-hij"


def make_detail(
    payment_id: int = 101,
    status: PaymentStatus = PaymentStatus.PAID,
    user_email: str | None = "wanjiku@example.com",
) -> PaymentDetail:
    now = datetime.now(UTC)
    return PaymentDetail(
        payment=PaymentData(
            payment_id=payment_id,
            user_id=7,
            session_id=3,
            mpesa_code="QGH123456",
            expected_amount=Decimal("200.00"),
            actual_amount=Decimal("200.00"),
            amount_mismatch=False,
            status=status,
            admin_notes=None,
            full_message="QGH123456 Ksh 200 paid",
            submitted_at=now,
            updated_at=now,
        ),
        user_name="Wanjiku Kamau",
        user_email=user_email,
        session_title="Breaking into Product Management",
        session_price=Decimal("200.00"),
        google_meet_link=MEET_LINK,
    )


@pytest.fixture
def workflow(db_session: AsyncMock, notifier: PaymentNotifier) -> PaymentWorkflow:
    """Workflow with payment and access services replaced by mocks."""
    wf = PaymentWorkflow(db_session, notifier)
    wf.payments = MagicMock()
    wf.payments.update_status = AsyncMock(return_value=True)
    wf.payments.bulk_update_status = AsyncMock(return_value=[])
    wf.payments.get_payment = AsyncMock(return_value=make_detail())
    wf.access = MagicMock()
    wf.access.create_secure_access = AsyncMock(return_value="tok_live_grant")
    return wf


class TestChangeStatus:
    """Tests for change_status."""

    async def test_paid_mints_grant_and_queues_email(self, workflow: PaymentWorkflow) -> None:
        tasks = BackgroundTasks()

        outcome = await workflow.change_status(101, "paid", "Confirmed on statement", tasks)

        workflow.payments.update_status.assert_awaited_once_with(
            101, PaymentStatus.PAID, "Confirmed on statement"
        )
        workflow.access.create_secure_access.assert_awaited_once_with(7, 3)
        assert outcome.access_granted is True
        assert outcome.notification is not None
        assert "https://skillyme.test/secure-access/tok_live_grant" in outcome.notification.text
        assert MEET_LINK not in outcome.notification.text
        assert len(tasks.tasks) == 1
        assert tasks.tasks[0].args == (outcome.notification,)

    async def test_grant_failure_falls_back_to_meet_link(self, workflow: PaymentWorkflow) -> None:
        workflow.access.create_secure_access = AsyncMock(
            side_effect=AccessGrantError(7, 3, "insert failed")
        )

        outcome = await workflow.change_status(101, PaymentStatus.PAID)

        assert outcome.access_granted is False
        assert outcome.payment.payment.status == PaymentStatus.PAID
        assert outcome.notification is not None
        assert MEET_LINK in outcome.notification.text

    async def test_database_error_during_grant_falls_back(self, workflow: PaymentWorkflow) -> None:
        workflow.access.create_secure_access = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("down"))
        )

        outcome = await workflow.change_status(101, PaymentStatus.PAID)

        assert outcome.access_granted is False

    @pytest.mark.parametrize(
        ("status", "subject_prefix"),
        [
            (PaymentStatus.FAILED, "Payment Issue"),
            (PaymentStatus.PENDING, "Payment Submission Confirmation"),
            (PaymentStatus.AMOUNT_MISMATCH, "Payment Review Required"),
        ],
    )
    async def test_non_paid_status_does_not_grant(
        self, workflow: PaymentWorkflow, status: PaymentStatus, subject_prefix: str
    ) -> None:
        workflow.payments.get_payment = AsyncMock(return_value=make_detail(status=status))

        outcome = await workflow.change_status(101, status)

        workflow.access.create_secure_access.assert_not_awaited()
        assert outcome.access_granted is False
        assert outcome.notification is not None
        assert outcome.notification.subject.startswith(subject_prefix)

    async def test_unknown_payment(self, workflow: PaymentWorkflow) -> None:
        workflow.payments.update_status = AsyncMock(return_value=False)

        with pytest.raises(PaymentNotFoundError) as exc_info:
            await workflow.change_status(999, "paid")

        assert exc_info.value.payment_id == 999
        workflow.access.create_secure_access.assert_not_awaited()

    async def test_invalid_status_is_rejected_before_update(
        self, workflow: PaymentWorkflow
    ) -> None:
        with pytest.raises(InvalidPaymentStatusError):
            await workflow.change_status(101, "refunded")

        workflow.payments.update_status.assert_not_awaited()

    async def test_missing_email_skips_notification(self, workflow: PaymentWorkflow) -> None:
        workflow.payments.get_payment = AsyncMock(return_value=make_detail(user_email=None))
        tasks = BackgroundTasks()

        outcome = await workflow.change_status(101, "paid", background_tasks=tasks)

        assert outcome.notification is None
        assert outcome.access_granted is True
        assert tasks.tasks == []

    async def test_failed_read_back_still_reports_committed_change(
        self, workflow: PaymentWorkflow, db_session: AsyncMock
    ) -> None:
        workflow.payments.get_payment = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("connection reset"))
        )
        tasks = BackgroundTasks()

        outcome = await workflow.change_status(101, "paid", background_tasks=tasks)

        assert outcome.payment_id == 101
        assert outcome.payment is None
        assert outcome.notification is None
        assert tasks.tasks == []
        workflow.payments.update_status.assert_awaited_once()
        db_session.rollback.assert_awaited_once()

    async def test_email_failure_leaves_status_committed(
        self, workflow: PaymentWorkflow, email_client: MagicMock
    ) -> None:
        email_client.send = AsyncMock(side_effect=RuntimeError("provider down"))
        tasks = BackgroundTasks()

        outcome = await workflow.change_status(101, "paid", background_tasks=tasks)
        await tasks()

        email_client.send.assert_awaited_once()
        assert outcome.payment.payment.status == PaymentStatus.PAID
        workflow.payments.update_status.assert_awaited_once()


class TestBulkChangeStatus:
    """Tests for bulk_change_status."""

    async def test_each_updated_payment_gets_side_effects(
        self, workflow: PaymentWorkflow
    ) -> None:
        workflow.payments.bulk_update_status = AsyncMock(return_value=[101, 102])
        workflow.payments.get_payment = AsyncMock(
            side_effect=[make_detail(101), make_detail(102)]
        )

        outcomes = await workflow.bulk_change_status([102, 101, 999], "paid", "batch")

        workflow.payments.bulk_update_status.assert_awaited_once_with(
            [102, 101, 999], PaymentStatus.PAID, "batch"
        )
        assert [o.payment.payment.payment_id for o in outcomes] == [101, 102]
        assert all(o.access_granted for o in outcomes)
        assert workflow.access.create_secure_access.await_count == 2

    async def test_nothing_updated(self, workflow: PaymentWorkflow) -> None:
        outcomes = await workflow.bulk_change_status([999], "failed")

        assert outcomes == []
        workflow.payments.get_payment.assert_not_awaited()

    async def test_failure_on_one_payment_keeps_the_others(
        self, workflow: PaymentWorkflow, email_client: MagicMock
    ) -> None:
        workflow.payments.bulk_update_status = AsyncMock(return_value=[101, 102])
        workflow.payments.get_payment = AsyncMock(
            side_effect=[
                make_detail(101),
                OperationalError("SELECT", {}, Exception("connection reset")),
            ]
        )
        tasks = BackgroundTasks()

        outcomes = await workflow.bulk_change_status([101, 102], "paid", background_tasks=tasks)
        await tasks()

        assert [o.payment_id for o in outcomes] == [101, 102]
        assert outcomes[0].access_granted is True
        assert outcomes[1].payment is None
        assert len(tasks.tasks) == 1
        email_client.send.assert_awaited_once()
