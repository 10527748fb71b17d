"""
Metrics Collection with Prometheus.

Exposes payment workflow and HTTP metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from skillyme.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    PAYMENT_STATUS = "payment_status"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class PaymentMetrics:
    """
    Centralized metrics for the Skillyme payments API.

    Covers:
    - HTTP requests (rate, duration, errors)
    - M-Pesa submissions (outcome, verification latency)
    - Status transitions and access grants
    - Notification delivery
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "skillyme_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "skillyme_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "skillyme_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "skillyme_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Payment Metrics
        # ====================================================================
        self.payment_submissions_total = Counter(
            "skillyme_payment_submissions_total",
            "M-Pesa submissions by outcome",
            [MetricLabels.OUTCOME],
        )

        self.payment_verification_duration_seconds = Histogram(
            "skillyme_payment_verification_duration_seconds",
            "M-Pesa verification duration in seconds",
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
        )

        self.payment_status_transitions_total = Counter(
            "skillyme_payment_status_transitions_total",
            "Operator status transitions by target status",
            [MetricLabels.PAYMENT_STATUS],
        )

        # ====================================================================
        # Secure Access Metrics
        # ====================================================================
        self.access_grants_total = Counter(
            "skillyme_access_grants_total",
            "Secure access grants (minted or reused)",
            [MetricLabels.OUTCOME],
        )

        self.access_verifications_total = Counter(
            "skillyme_access_verifications_total",
            "Secure access verifications by outcome",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Notification Metrics
        # ====================================================================
        self.notifications_total = Counter(
            "skillyme_notifications_total",
            "Notification dispatch attempts by outcome",
            [MetricLabels.OUTCOME],
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "skillyme_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_submission(self, outcome: str) -> None:
        """Record an M-Pesa submission outcome (pending, amount_mismatch, rejected...)."""
        self.payment_submissions_total.labels(outcome=outcome).inc()

    def record_verification(self, duration: float) -> None:
        """Record verifier latency."""
        self.payment_verification_duration_seconds.observe(duration)

    def record_status_transition(self, status: str) -> None:
        """Record an operator status change."""
        self.payment_status_transitions_total.labels(payment_status=status).inc()

    def record_access_grant(self, outcome: str) -> None:
        """Record a grant mint ("minted") or reuse ("reused")."""
        self.access_grants_total.labels(outcome=outcome).inc()

    def record_access_verification(self, outcome: str) -> None:
        """Record a secure access verification outcome."""
        self.access_verifications_total.labels(outcome=outcome).inc()

    def record_notification(self, outcome: str) -> None:
        """Record a notification outcome (sent, logged, throttled, failed)."""
        self.notifications_total.labels(outcome=outcome).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = PaymentMetrics()
