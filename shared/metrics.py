"""
Shared metrics configuration for the storefront integrity layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info


class MetricsCollector:
    """Centralized metrics collector for services.

    Each collector owns a private registry unless one is passed in, so several
    service instances (tests, workers) can coexist in one interpreter.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_integrity_metrics()

    def _setup_integrity_metrics(self):
        """Signature, CSRF and rate limit metrics."""
        self._metrics["signature_verifications_total"] = Counter(
            "signature_verifications_total",
            "Payment signature verifications",
            ["gateway", "result"],
            registry=self.registry
        )

        self._metrics["csrf_rejections_total"] = Counter(
            "csrf_rejections_total",
            "Requests rejected by the CSRF guard",
            ["code"],
            registry=self.registry
        )

        self._metrics["rate_limit_decisions_total"] = Counter(
            "rate_limit_decisions_total",
            "Rate limiter decisions",
            ["endpoint_class", "decision"],
            registry=self.registry
        )

        self._metrics["rate_limit_entries"] = Gauge(
            "rate_limit_entries",
            "Live entries in the rate limit store",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_signature_verification(self, gateway: str, valid: bool):
        result = "valid" if valid else "invalid"
        self._metrics["signature_verifications_total"].labels(gateway=gateway, result=result).inc()

    def record_csrf_rejection(self, code: str):
        self._metrics["csrf_rejections_total"].labels(code=code).inc()

    def record_rate_limit_decision(self, endpoint_class: str, allowed: bool):
        decision = "allowed" if allowed else "denied"
        self._metrics["rate_limit_decisions_total"].labels(
            endpoint_class=endpoint_class,
            decision=decision
        ).inc()

    def set_rate_limit_entries(self, count: int):
        self._metrics["rate_limit_entries"].set(count)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
