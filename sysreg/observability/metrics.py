"""
Metrics Collection with Prometheus.

Exposes registration and trust metrics for monitoring.
"""

import time
from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from sysreg.config import Settings, settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    OPERATION = "operation"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"
    ERROR_CODE = "error_code"


class RegistrationMetrics:
    """
    Centralized metrics for product registration.

    Covers:
    - Remote entitlement calls (rate, duration, outcome)
    - TLS verification failures by OpenSSL error code
    - Repository service provisioning
    - Addon catalog size
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        self.service_info = Info(
            "sysreg_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # Remote Call Metrics
        # ====================================================================
        self.remote_calls_total = Counter(
            "sysreg_remote_calls_total",
            "Total calls to the entitlement service",
            [MetricLabels.OPERATION.value, MetricLabels.OUTCOME.value],
        )

        self.remote_call_duration_seconds = Histogram(
            "sysreg_remote_call_duration_seconds",
            "Entitlement service call duration in seconds",
            [MetricLabels.OPERATION.value],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
        )

        # ====================================================================
        # Trust Metrics
        # ====================================================================
        self.tls_verify_failures_total = Counter(
            "sysreg_tls_verify_failures_total",
            "TLS certificate verification failures seen by the verify callback",
            [MetricLabels.ERROR_CODE.value],
        )

        # ====================================================================
        # Service Provisioning Metrics
        # ====================================================================
        self.services_provisioned_total = Counter(
            "sysreg_services_provisioned_total",
            "Repository services added or refreshed",
            ["success"],
        )

        self.addons_available = Gauge(
            "sysreg_addons_available",
            "Addons offered for the base product in the last catalog fetch",
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "sysreg_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE.value, MetricLabels.OPERATION.value],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_remote_call(self, operation: str, outcome: str, duration: float) -> None:
        """Record a remote call and its duration."""
        self.remote_calls_total.labels(operation=operation, outcome=outcome).inc()
        self.remote_call_duration_seconds.labels(operation=operation).observe(duration)

    def record_tls_failure(self, error_code: int) -> None:
        """Record a failed certificate verification."""
        self.tls_verify_failures_total.labels(error_code=str(error_code)).inc()

    def record_service_provisioned(self, success: bool) -> None:
        """Record a repository service add/refresh."""
        self.services_provisioned_total.labels(success=str(success)).inc()

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = RegistrationMetrics()


class track_remote_call:
    """
    Context manager for tracking entitlement service calls.

    Usage:
        with track_remote_call("activate_product", session.settings):
            service = connect.activate_product(identity, params, email)
    """

    def __init__(self, operation: str, config: Settings | None = None) -> None:
        self.operation = operation
        self.config = config or settings
        self.start_time: float = 0.0

    def __enter__(self) -> "track_remote_call":
        """Start tracking."""
        self.start_time = time.monotonic()
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Record metrics."""
        if not self.config.metrics_enabled:
            return
        duration = time.monotonic() - self.start_time
        outcome = "success" if exc_type is None else "failure"
        metrics.record_remote_call(self.operation, outcome, duration)
        if exc_type is not None:
            metrics.record_error(exc_type.__name__, self.operation)
