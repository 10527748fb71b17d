"""
API Routes - Student submission, secure access and health endpoints.
"""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from skillyme.api.dependencies import StudentIdentity, get_current_user, get_payment_verifier
from skillyme.db.session import get_read_db, get_write_db
from skillyme.exceptions import (
    CodeExtractionError,
    InvalidPaymentCodeError,
    SessionNotFoundError,
)
from skillyme.models.api import (
    HealthResponse,
    SecureAccessData,
    SecureAccessResponse,
    SecureAccessSession,
    SecureAccessUser,
    SubmissionData,
    SubmitMpesaRequest,
    SubmitMpesaResponse,
)
from skillyme.services.payment_verifier import PaymentVerifier
from skillyme.services.payments import PaymentService
from skillyme.services.secure_access import SecureAccessService

logger = get_logger(__name__)
router = APIRouter()


@router.post(
    "/api/payments/submit-mpesa",
    response_model=SubmitMpesaResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_mpesa_code(
    request: SubmitMpesaRequest,
    user: StudentIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_write_db),
    verifier: PaymentVerifier = Depends(get_payment_verifier),
) -> SubmitMpesaResponse:
    """
    Submit a pasted M-Pesa confirmation message for a session.

    Resubmitting the same message returns the payment created the first time.

    Auth: Bearer {platform_jwt}
    """
    service = PaymentService(db)

    try:
        result = await service.submit_payment(
            user_id=user.user_id,
            session_id=request.session_id,
            full_message=request.full_mpesa_message,
            claimed_amount=request.amount,
            verifier=verifier,
        )
    except (CodeExtractionError, InvalidPaymentCodeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except SessionNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        ) from exc
    except Exception as exc:
        logger.error(
            "mpesa_submission_failed",
            endpoint="/api/payments/submit-mpesa",
            user_id=user.user_id,
            error=str(exc),
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit M-Pesa code",
        ) from exc

    return SubmitMpesaResponse(
        message=result.message,
        data=SubmissionData(
            payment_id=result.payment.payment_id,
            mpesa_code=result.mpesa_code,
            amount_paid=float(result.amount_paid),
            amount_match=result.amount_match,
        ),
    )


@router.get("/api/secure-access/{token}", response_model=SecureAccessResponse)
async def verify_secure_access(
    token: str,
    email: str | None = Query(None),
    db: AsyncSession = Depends(get_read_db),
) -> SecureAccessResponse:
    """
    Release a session's meeting link to the holder of a join link.

    No bearer credential: the student's email is the second factor.
    """
    if not email or not email.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email verification is required",
        )

    service = SecureAccessService(db)

    try:
        verification = await service.verify_access_token(token, email)
    except Exception as exc:
        logger.error(
            "secure_access_verification_failed",
            endpoint="/api/secure-access",
            error=str(exc),
            exc_info=True,
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Access verification failed",
        ) from exc

    if not verification.valid:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=verification.message,
        )

    return SecureAccessResponse(
        data=SecureAccessData(
            user=SecureAccessUser(
                name=verification.user_name or "",
                email=verification.user_email or email,
            ),
            session=SecureAccessSession(
                title=verification.session_title or "",
                google_meet_link=verification.google_meet_link,
            ),
            access_token=token,
            expires_at=verification.expires_at or datetime.now(UTC),
        )
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(db: AsyncSession = Depends(get_read_db)) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    try:
        await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("health_check_database_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable",
        ) from exc

    return HealthResponse(
        status="healthy",
        database="connected",
        timestamp=datetime.now(UTC).isoformat(),
    )
