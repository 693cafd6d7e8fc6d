"""
Custom application metrics instrumentation for OpenTelemetry.

This module provides custom metrics for monitoring application behavior:
- HTTP request counts and latency
- Attempt lifecycle (started, resumed, finalized)
- Lost attempt-creation races
- Expiry sweep results
- Error rates

Usage:
    from app.observability import metrics

    # Record HTTP request
    metrics.record_http_request("GET", "/v1/tests/{test_id}/session", 200, 0.15)

    # Record attempt lifecycle
    metrics.record_attempt_started(mode="flexible")
    metrics.record_attempt_finalized(trigger="user_submit", status="submitted")
"""
import logging
from typing import Any, Dict, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)


class ApplicationMetrics:
    """
    Application-level metrics using OpenTelemetry.

    Provides helper methods for recording custom metrics throughout the application.
    All methods are no-ops if metrics are not enabled.
    """

    def __init__(self) -> None:
        """Initialize ApplicationMetrics with empty state."""
        self._initialized = False
        self._meter: Any = None
        self._meter_provider: Any = None
        self._counters: Dict[str, Any] = {}
        self._histograms: Dict[str, Any] = {}

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """
        Initialize OpenTelemetry metrics.

        Should be called during application startup. Installs a MeterProvider
        with a periodic console exporter and creates the application meter.
        """
        if not settings.OTEL_ENABLED or not settings.OTEL_METRICS_ENABLED:
            logger.info("Application metrics not enabled (OTEL_METRICS_ENABLED=False)")
            return

        if self._initialized:
            logger.warning("Application metrics already initialized")
            return

        from opentelemetry import metrics as otel_metrics
        from opentelemetry.sdk.metrics import MeterProvider
        from opentelemetry.sdk.metrics.export import (
            ConsoleMetricExporter,
            PeriodicExportingMetricReader,
        )
        from opentelemetry.sdk.resources import Resource

        resource = Resource.create(
            {
                "service.name": settings.OTEL_SERVICE_NAME,
                "service.version": settings.APP_VERSION,
                "deployment.environment": settings.ENV,
            }
        )
        reader = PeriodicExportingMetricReader(
            ConsoleMetricExporter(),
            export_interval_millis=settings.OTEL_METRICS_EXPORT_INTERVAL_MILLIS,
        )
        self._meter_provider = MeterProvider(resource=resource, metric_readers=[reader])
        otel_metrics.set_meter_provider(self._meter_provider)
        self._meter = otel_metrics.get_meter(
            settings.OTEL_SERVICE_NAME, version=settings.APP_VERSION
        )

        self._initialized = True
        logger.info("Application metrics initialized successfully")

    def shutdown(self) -> None:
        """Flush and stop the meter provider."""
        if self._meter_provider is not None:
            try:
                self._meter_provider.shutdown()
            except Exception as e:
                logger.warning(f"Failed to shut down meter provider: {e}")
        self._initialized = False
        self._meter = None
        self._meter_provider = None
        self._counters.clear()
        self._histograms.clear()

    def _add(self, name: str, value: int = 1, labels: Optional[Dict[str, str]] = None):
        if name not in self._counters:
            self._counters[name] = self._meter.create_counter(
                name=name, unit="1", description=f"Counter for {name}"
            )
        self._counters[name].add(value, attributes=labels or {})

    def _record(self, name: str, value: float, unit: str, labels: Dict[str, str]):
        if name not in self._histograms:
            self._histograms[name] = self._meter.create_histogram(
                name=name, unit=unit, description=f"Histogram for {name}"
            )
        self._histograms[name].record(value, attributes=labels)

    def record_http_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration: float,
    ) -> None:
        """
        Record an HTTP request.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: Request path or route template
            status_code: HTTP status code (200, 404, etc.)
            duration: Request duration in seconds
        """
        if not self._initialized:
            return

        try:
            labels = {
                "http.method": method,
                "http.route": path,
                "http.status_code": str(status_code),
            }
            self._add("http.server.requests", labels=labels)
            self._record("http.server.request.duration", duration, "s", labels)
        except Exception as e:
            logger.debug(f"Failed to record HTTP request metric: {e}")

    def record_error(self, error_type: str, path: Optional[str] = None) -> None:
        """
        Record an application error.

        Args:
            error_type: Type of error (e.g., "Unavailable", "GracefulFailure")
            path: Request path where error occurred (optional)
        """
        if not self._initialized:
            return

        try:
            labels = {"error.type": error_type}
            if path:
                labels["http.route"] = path
            self._add("app.errors", labels=labels)
        except Exception as e:
            logger.debug(f"Failed to record error metric: {e}")

    def record_attempt_started(self, mode: str) -> None:
        """Record creation of a new attempt for a test of the given mode."""
        if not self._initialized:
            return

        try:
            self._add("attempts.started", labels={"test.mode": mode})
        except Exception as e:
            logger.debug(f"Failed to record attempt started metric: {e}")

    def record_attempt_resumed(self, mode: str) -> None:
        if not self._initialized:
            return

        try:
            self._add("attempts.resumed", labels={"test.mode": mode})
        except Exception as e:
            logger.debug(f"Failed to record attempt resumed metric: {e}")

    def record_attempt_finalized(self, trigger: str, status: str) -> None:
        """
        Record an attempt leaving in_progress.

        Args:
            trigger: user_submit or auto_expire
            status: Resulting stored status (submitted, auto_submitted)
        """
        if not self._initialized:
            return

        try:
            self._add(
                "attempts.finalized",
                labels={"attempt.trigger": trigger, "attempt.status": status},
            )
        except Exception as e:
            logger.debug(f"Failed to record attempt finalized metric: {e}")

    def record_store_conflict(self) -> None:
        """Record a lost conditional-create race."""
        if not self._initialized:
            return

        try:
            self._add("attempts.store_conflicts")
        except Exception as e:
            logger.debug(f"Failed to record store conflict metric: {e}")

    def record_sweep(self, finalized: int, failed: int) -> None:
        """Record the outcome of one expiry sweep pass."""
        if not self._initialized:
            return

        try:
            if finalized:
                self._add("attempts.sweep.finalized", value=finalized)
            if failed:
                self._add("attempts.sweep.failed", value=failed)
        except Exception as e:
            logger.debug(f"Failed to record sweep metric: {e}")


# Global metrics instance
metrics = ApplicationMetrics()
