"""
Shared metrics configuration for the Concert Access Layer.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, start_http_server


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # A private registry keeps several collectors in one process apart.
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

        self._metrics["access_policy_decisions_total"] = Counter(
            "access_policy_decisions_total",
            "Total access policy decisions",
            ["entity", "operation", "decision"],
            registry=self.registry
        )

        self._metrics["access_constraint_violations_total"] = Counter(
            "access_constraint_violations_total",
            "Total rejected writes due to schema constraints",
            ["entity"],
            registry=self.registry
        )

        self._metrics["access_policy_configuration_errors_total"] = Counter(
            "access_policy_configuration_errors_total",
            "Total policy configuration errors raised during evaluation",
            registry=self.registry
        )

        self._metrics["access_check_duration_seconds"] = Histogram(
            "access_check_duration_seconds",
            "Access check duration in seconds",
            ["operation"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def get_sample_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read back a sample from this collector's registry."""
        return self.registry.get_sample_value(name, labels or {})

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        start_http_server(port, registry=self.registry)

    def record_decision(self, entity: str, operation: str, allowed: bool):
        """Record an access decision."""
        self._metrics["access_policy_decisions_total"].labels(
            entity=entity,
            operation=operation,
            decision="allow" if allowed else "deny"
        ).inc()

    def record_constraint_violation(self, entity: str):
        """Record a rejected write."""
        self._metrics["access_constraint_violations_total"].labels(entity=entity).inc()

    def record_configuration_error(self):
        """Record a policy configuration error."""
        self._metrics["access_policy_configuration_errors_total"].inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            if operation_name in self._metrics:
                self._metrics[operation_name].labels(**labels).observe(duration)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
