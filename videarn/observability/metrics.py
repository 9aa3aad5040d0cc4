"""
Metrics Collection with Prometheus.

Exposes ledger and system metrics for monitoring.
"""

from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from videarn.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    OPERATION = "operation"
    RESULT = "result"
    ERROR_TYPE = "error_type"


class LedgerMetrics:
    """
    Centralized metrics for the VidEarn ledger.

    Covers:
    - HTTP requests (rate, duration, errors)
    - Watches and daily claims (rate, outcome, amount)
    - Withdrawals and plan purchases (request, approve, reject)
    - Referral bonuses (awarded, skipped, failed)
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "videarn_service",
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
            "videarn_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "videarn_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "videarn_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Reward Metrics
        # ====================================================================
        self.watches_total = Counter(
            "videarn_watches_total",
            "Watch facts recorded",
            [MetricLabels.RESULT],
        )

        self.daily_claims_total = Counter(
            "videarn_daily_claims_total",
            "Daily reward claim attempts",
            [MetricLabels.RESULT],
        )

        self.daily_claim_amount_minor = Histogram(
            "videarn_daily_claim_amount_minor",
            "Daily reward amounts in minor units",
            buckets=(1000, 2500, 5000, 10000, 25000, 50000, 100000, 250000),
        )

        # ====================================================================
        # Request Workflow Metrics (withdrawals, plan purchases)
        # ====================================================================
        self.withdrawals_total = Counter(
            "videarn_withdrawals_total",
            "Withdrawal workflow events",
            [MetricLabels.OPERATION, MetricLabels.RESULT],
        )

        self.withdrawal_amount_minor = Histogram(
            "videarn_withdrawal_amount_minor",
            "Requested withdrawal amounts in minor units",
            buckets=(20000, 50000, 100000, 250000, 500000, 1000000, 5000000),
        )

        self.transactions_total = Counter(
            "videarn_transactions_total",
            "Plan purchase workflow events",
            [MetricLabels.OPERATION, MetricLabels.RESULT],
        )

        self.referral_bonuses_total = Counter(
            "videarn_referral_bonuses_total",
            "Referral bonus outcomes",
            [MetricLabels.RESULT],
        )

        # ====================================================================
        # Account Metrics
        # ====================================================================
        self.accounts_created_total = Counter(
            "videarn_accounts_created_total",
            "Total accounts registered",
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "videarn_errors_total",
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

    def record_watch(self, result: str) -> None:
        """Record a watch attempt ("recorded", "duplicate", "incomplete")."""
        self.watches_total.labels(result=result).inc()

    def record_claim(self, result: str, amount_minor: int = 0) -> None:
        """Record a daily claim attempt."""
        self.daily_claims_total.labels(result=result).inc()
        if result == "paid":
            self.daily_claim_amount_minor.observe(amount_minor)

    def record_withdrawal(self, operation: str, result: str, amount_minor: int = 0) -> None:
        """Record a withdrawal request/approval/rejection."""
        self.withdrawals_total.labels(operation=operation, result=result).inc()
        if operation == "request" and result == "accepted":
            self.withdrawal_amount_minor.observe(amount_minor)

    def record_transaction(self, operation: str, result: str) -> None:
        """Record a plan purchase submission/approval/rejection."""
        self.transactions_total.labels(operation=operation, result=result).inc()

    def record_referral_bonus(self, result: str) -> None:
        """Record a referral bonus outcome ("awarded", "skipped", "failed")."""
        self.referral_bonuses_total.labels(result=result).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = LedgerMetrics()
