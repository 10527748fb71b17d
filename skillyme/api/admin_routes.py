"""
Admin API routes for payment review and session access management.

Viewers can read; changing a payment or revoking access requires the admin role.
"""

import math

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.api.admin_dependencies import get_current_admin, require_admin_role
from skillyme.api.dependencies import get_notifier
from skillyme.db.models import Admin
from skillyme.db.session import get_read_db, get_write_db
from skillyme.exceptions import InvalidPaymentStatusError, PaymentNotFoundError
from skillyme.models.api import (
    BulkUpdateData,
    BulkUpdatePaymentsRequest,
    BulkUpdateResponse,
    DailyRevenue,
    MessageResponse,
    Pagination,
    PaymentListData,
    PaymentListResponse,
    PaymentOverview,
    PaymentRecord,
    PaymentRecordData,
    PaymentRecordResponse,
    PaymentStatsData,
    PaymentStatsResponse,
    PaymentStatus,
    SessionAccessItem,
    SessionAccessListResponse,
    UpdatePaymentStatusRequest,
)
from skillyme.models.domain import PaymentDetail
from skillyme.services.notifications import PaymentNotifier
from skillyme.services.payment_workflow import PaymentWorkflow
from skillyme.services.payments import PaymentService
from skillyme.services.secure_access import SecureAccessService

logger = get_logger(__name__)
router = APIRouter(prefix="/api/admin", tags=["admin"])


def _to_record(detail: PaymentDetail, include_message: bool = False) -> PaymentRecord:
    payment = detail.payment
    return PaymentRecord(
        payment_id=payment.payment_id,
        user_id=payment.user_id,
        session_id=payment.session_id,
        mpesa_code=payment.mpesa_code,
        amount=float(payment.expected_amount),
        actual_amount=float(payment.actual_amount),
        amount_mismatch=payment.amount_mismatch,
        status=payment.status,
        admin_notes=payment.admin_notes,
        submitted_at=payment.submitted_at,
        updated_at=payment.updated_at,
        user_name=detail.user_name,
        user_email=detail.user_email,
        session_title=detail.session_title,
        full_mpesa_message=payment.full_message if include_message else None,
    )


# ============================================================================
# Payments
# ============================================================================


@router.get("/payments", response_model=PaymentListResponse)
async def list_payments(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    status_filter: PaymentStatus | None = Query(None, alias="status"),
    session_id: int | None = Query(None, ge=1),
    user_id: int | None = Query(None, ge=1),
    search: str | None = Query(None, description="Search by code, name or email"),
    db: AsyncSession = Depends(get_read_db),
    admin: Admin = Depends(get_current_admin),  # Both admin and viewer can view
) -> PaymentListResponse:
    """
    List payments, newest first.

    Accessible by: admin, viewer
    """
    service = PaymentService(db)
    items, total = await service.list_payments(
        page=page,
        limit=limit,
        status=status_filter,
        session_id=session_id,
        user_id=user_id,
        search=search,
    )

    return PaymentListResponse(
        data=PaymentListData(
            payments=[_to_record(item) for item in items],
            pagination=Pagination(
                page=page,
                limit=limit,
                total=total,
                pages=math.ceil(total / limit) if total else 0,
            ),
        )
    )


@router.get("/payments/stats", response_model=PaymentStatsResponse)
async def get_payment_stats(
    db: AsyncSession = Depends(get_read_db),
    admin: Admin = Depends(get_current_admin),
) -> PaymentStatsResponse:
    """
    Payment totals, revenue and daily paid revenue for the last 30 days.

    Accessible by: admin, viewer
    """
    stats = await PaymentService(db).get_stats()

    return PaymentStatsResponse(
        data=PaymentStatsData(
            overview=PaymentOverview(
                total_payments=stats.total_payments,
                paid_payments=stats.paid_payments,
                pending_payments=stats.pending_payments,
                failed_payments=stats.failed_payments,
                mismatch_payments=stats.mismatch_payments,
                total_revenue=float(stats.total_revenue),
                expected_revenue=float(stats.expected_revenue),
                pending_revenue=float(stats.pending_revenue),
                success_rate=stats.success_rate,
            ),
            status_stats=stats.status_counts,
            daily_revenue=[
                DailyRevenue(date=point.date, revenue=float(point.revenue))
                for point in stats.daily_revenue
            ],
        )
    )


@router.get("/payments/{payment_id}", response_model=PaymentRecordResponse)
async def get_payment(
    payment_id: int,
    db: AsyncSession = Depends(get_read_db),
    admin: Admin = Depends(get_current_admin),
) -> PaymentRecordResponse:
    """
    Single payment including the original M-Pesa message.

    Accessible by: admin, viewer
    """
    detail = await PaymentService(db).get_payment(payment_id)
    if detail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        )

    return PaymentRecordResponse(
        data=PaymentRecordData(payment=_to_record(detail, include_message=True)),
    )


@router.put("/payments/{payment_id}/status", response_model=PaymentRecordResponse)
async def update_payment_status(
    payment_id: int,
    request: UpdatePaymentStatusRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_write_db),
    notifier: PaymentNotifier = Depends(get_notifier),
    admin: Admin = Depends(require_admin_role),  # Admin only
) -> PaymentRecordResponse:
    """
    Change a payment's status.

    Confirming a payment issues a secure access link; the student is emailed
    after the response is sent.

    Accessible by: admin only
    """
    workflow = PaymentWorkflow(db, notifier)

    try:
        outcome = await workflow.change_status(
            payment_id,
            request.status,
            admin_notes=request.admin_notes,
            background_tasks=background_tasks,
        )
    except InvalidPaymentStatusError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except PaymentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Payment not found",
        ) from exc
    except Exception as exc:
        logger.error(
            "payment_status_update_failed",
            endpoint=f"/api/admin/payments/{payment_id}/status",
            admin_id=admin.id,
            error=str(exc),
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update payment status",
        ) from exc

    logger.info(
        "admin_payment_status_changed",
        payment_id=payment_id,
        status=request.status.value,
        admin_id=admin.id,
        access_granted=outcome.access_granted,
    )

    return PaymentRecordResponse(
        message="Payment status updated successfully",
        data=PaymentRecordData(
            payment=_to_record(outcome.payment) if outcome.payment is not None else None,
            access_granted=outcome.access_granted,
        ),
    )


@router.post("/payments/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update_payments(
    request: BulkUpdatePaymentsRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_write_db),
    notifier: PaymentNotifier = Depends(get_notifier),
    admin: Admin = Depends(require_admin_role),  # Admin only
) -> BulkUpdateResponse:
    """
    Set one status on many payments.

    Each payment gets the same grant and email as a single update.

    Accessible by: admin only
    """
    workflow = PaymentWorkflow(db, notifier)

    try:
        outcomes = await workflow.bulk_change_status(
            request.payment_ids,
            request.status,
            admin_notes=request.admin_notes,
            background_tasks=background_tasks,
        )
    except InvalidPaymentStatusError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except Exception as exc:
        logger.error(
            "payment_bulk_update_failed",
            endpoint="/api/admin/payments/bulk-update",
            admin_id=admin.id,
            error=str(exc),
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to bulk update payments",
        ) from exc

    updated_ids = [outcome.payment_id for outcome in outcomes]
    logger.info(
        "admin_payment_bulk_update",
        status=request.status.value,
        admin_id=admin.id,
        updated_count=len(updated_ids),
    )

    return BulkUpdateResponse(
        message=f"{len(updated_ids)} payments updated successfully",
        data=BulkUpdateData(updated_count=len(updated_ids), payment_ids=updated_ids),
    )


# ============================================================================
# Session Access
# ============================================================================


@router.get("/sessions/{session_id}/access", response_model=SessionAccessListResponse)
async def get_session_access(
    session_id: int,
    db: AsyncSession = Depends(get_read_db),
    admin: Admin = Depends(get_current_admin),
) -> SessionAccessListResponse:
    """
    Students holding a live access grant for a session.

    Accessible by: admin, viewer
    """
    entries = await SecureAccessService(db).get_session_access_list(session_id)

    return SessionAccessListResponse(
        data=[
            SessionAccessItem(
                user_id=entry.user_id,
                name=entry.name,
                email=entry.email,
                access_granted_at=entry.granted_at,
                expires_at=entry.expires_at,
            )
            for entry in entries
        ]
    )


@router.delete("/sessions/{session_id}/access/{user_id}", response_model=MessageResponse)
async def revoke_session_access(
    session_id: int,
    user_id: int,
    db: AsyncSession = Depends(get_write_db),
    admin: Admin = Depends(require_admin_role),  # Admin only
) -> MessageResponse:
    """
    Expire a student's access grants for a session.

    Accessible by: admin only
    """
    revoked = await SecureAccessService(db).revoke_access(user_id, session_id)

    logger.info(
        "admin_session_access_revoked",
        session_id=session_id,
        user_id=user_id,
        admin_id=admin.id,
        revoked=revoked,
    )

    if revoked == 0:
        return MessageResponse(success=True, message="No active access to revoke")
    return MessageResponse(success=True, message="Access revoked successfully")
