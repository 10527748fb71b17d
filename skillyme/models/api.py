"""
API Models - Pydantic models for request/response validation.

Field names follow the wire contract used by the Skillyme web clients
(camelCase on the student endpoint, snake_case on admin endpoints).
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PaymentStatus(str, Enum):
    """Payment status enumeration."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    AMOUNT_MISMATCH = "amount_mismatch"


# ============================================================================
# Student Submission Models
# ============================================================================


class SubmitMpesaRequest(BaseModel):
    """POST /api/payments/submit-mpesa request body."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: int | None = Field(None, alias="sessionId", ge=1)
    full_mpesa_message: str = Field(..., alias="fullMpesaMessage")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)

    @field_validator("full_mpesa_message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        """Message must carry at least ten meaningful characters."""
        v = v.strip()
        if len(v) < 10:
            raise ValueError("M-Pesa message is required")
        return v


class SubmissionData(BaseModel):
    """Payload of a successful submission."""

    model_config = ConfigDict(populate_by_name=True)

    payment_id: int = Field(..., serialization_alias="paymentId")
    mpesa_code: str = Field(..., serialization_alias="mpesaCode")
    amount_paid: float = Field(..., serialization_alias="amountPaid")
    amount_match: bool = Field(..., serialization_alias="amountMatch")


class SubmitMpesaResponse(BaseModel):
    """POST /api/payments/submit-mpesa response."""

    success: bool = True
    message: str
    data: SubmissionData


# ============================================================================
# Admin Payment Models
# ============================================================================


class UpdatePaymentStatusRequest(BaseModel):
    """PUT /api/admin/payments/{id}/status request body."""

    status: PaymentStatus
    admin_notes: str | None = Field(None, max_length=1000)


class BulkUpdatePaymentsRequest(BaseModel):
    """POST /api/admin/payments/bulk-update request body."""

    payment_ids: list[Annotated[int, Field(ge=1)]] = Field(..., min_length=1)
    status: PaymentStatus
    admin_notes: str | None = Field(None, max_length=1000)


class PaymentRecord(BaseModel):
    """A payment row as exposed to operators."""

    payment_id: int
    user_id: int
    session_id: int
    mpesa_code: str
    amount: float
    actual_amount: float
    amount_mismatch: bool
    status: PaymentStatus
    admin_notes: str | None
    submitted_at: datetime
    updated_at: datetime
    user_name: str | None = None
    user_email: str | None = None
    session_title: str | None = None
    full_mpesa_message: str | None = None


class PaymentRecordData(BaseModel):
    """Wrapper matching the admin dashboard's `data.payment` shape."""

    payment: PaymentRecord | None
    access_granted: bool = False


class PaymentRecordResponse(BaseModel):
    """Single payment response."""

    success: bool = True
    message: str | None = None
    data: PaymentRecordData


class Pagination(BaseModel):
    """Pagination block for list endpoints."""

    page: int
    limit: int
    total: int
    pages: int


class PaymentListData(BaseModel):
    """Payments page."""

    payments: list[PaymentRecord]
    pagination: Pagination


class PaymentListResponse(BaseModel):
    """GET /api/admin/payments response."""

    success: bool = True
    data: PaymentListData


class PaymentOverview(BaseModel):
    """Headline payment statistics."""

    total_payments: int
    paid_payments: int
    pending_payments: int
    failed_payments: int
    mismatch_payments: int
    total_revenue: float
    expected_revenue: float
    pending_revenue: float
    success_rate: int


class DailyRevenue(BaseModel):
    """Paid revenue for one calendar day (UTC)."""

    date: str
    revenue: float


class PaymentStatsData(BaseModel):
    """GET /api/admin/payments/stats payload."""

    overview: PaymentOverview
    status_stats: dict[str, int]
    daily_revenue: list[DailyRevenue]


class PaymentStatsResponse(BaseModel):
    """GET /api/admin/payments/stats response."""

    success: bool = True
    data: PaymentStatsData


class BulkUpdateData(BaseModel):
    """Bulk update outcome."""

    updated_count: int
    payment_ids: list[int]


class BulkUpdateResponse(BaseModel):
    """POST /api/admin/payments/bulk-update response."""

    success: bool = True
    message: str
    data: BulkUpdateData


# ============================================================================
# Secure Access Models
# ============================================================================


class SecureAccessUser(BaseModel):
    """User block of a granted access."""

    name: str
    email: str


class SecureAccessSession(BaseModel):
    """Session block of a granted access."""

    title: str
    google_meet_link: str | None


class SecureAccessData(BaseModel):
    """Payload returned once a join link has been verified."""

    user: SecureAccessUser
    session: SecureAccessSession
    access_token: str
    expires_at: datetime


class SecureAccessResponse(BaseModel):
    """GET /api/secure-access/{token} response."""

    success: bool = True
    message: str = "Access granted"
    data: SecureAccessData


class SessionAccessItem(BaseModel):
    """One live grant on a session."""

    user_id: int
    name: str
    email: str
    access_granted_at: datetime
    expires_at: datetime


class SessionAccessListResponse(BaseModel):
    """GET /api/admin/sessions/{id}/access response."""

    success: bool = True
    data: list[SessionAccessItem]


class MessageResponse(BaseModel):
    """Plain success/failure envelope."""

    success: bool
    message: str


# ============================================================================
# Admin Auth Models
# ============================================================================


class AdminLoginRequest(BaseModel):
    """POST /api/admin/auth/login request body."""

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=255)


class AdminProfile(BaseModel):
    """Admin identity returned at login."""

    id: int
    email: str
    name: str
    role: str


class AdminLoginData(BaseModel):
    """Login payload."""

    access_token: str
    token_type: str = "bearer"
    admin: AdminProfile


class AdminLoginResponse(BaseModel):
    """POST /api/admin/auth/login response."""

    success: bool = True
    data: AdminLoginData


# ============================================================================
# Health
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    database: str
    timestamp: str
