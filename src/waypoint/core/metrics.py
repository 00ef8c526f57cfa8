"""Navigation metrics for Waypoint.

Provides Prometheus counters, histograms and gauges for navigations,
redirects, guard denials and middleware aborts. Every ``RouterMetrics``
owns its own ``CollectorRegistry`` so several routers can coexist in one
process.
"""

from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from waypoint.core.config import MetricsConfig


class RouterMetrics:
    """Router metrics collector using Prometheus."""

    def __init__(
        self, config: Optional[MetricsConfig] = None, registry: Optional[CollectorRegistry] = None
    ):
        """Initialize the metrics collector.

        Args:
            config: Metrics configuration
            registry: Registry to register metrics in (a new one by default)
        """
        self.config = config or MetricsConfig()
        self.registry = registry or CollectorRegistry()
        ns = self.config.namespace

        # Navigation metrics
        self.navigations_total = Counter(
            f"{ns}_navigations_total",
            "Total number of navigations",
            ["action", "outcome"],
            registry=self.registry,
        )

        self.navigation_duration = Histogram(
            f"{ns}_navigation_duration_seconds",
            "Pre-navigation pipeline latency in seconds",
            ["action"],
            buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
            registry=self.registry,
        )

        self.routes_not_found = Counter(
            f"{ns}_routes_not_found_total",
            "Total number of navigations to unknown paths",
            registry=self.registry,
        )

        # Redirect metrics
        self.redirects_total = Counter(
            f"{ns}_redirects_total",
            "Total number of redirect hops",
            ["source"],
            registry=self.registry,
        )

        self.redirect_loops = Counter(
            f"{ns}_redirect_loops_total",
            "Total number of navigations that exceeded the redirect bound",
            registry=self.registry,
        )

        # Pipeline metrics
        self.guard_denials = Counter(
            f"{ns}_guard_denials_total",
            "Total number of navigations stopped by a guard",
            ["guard"],
            registry=self.registry,
        )

        self.middleware_aborts = Counter(
            f"{ns}_middleware_aborts_total",
            "Total number of navigations aborted by middleware",
            ["middleware"],
            registry=self.registry,
        )

        # History metrics
        self.history_size = Gauge(
            f"{ns}_history_size",
            "Number of entries in the navigation history",
            registry=self.registry,
        )

    def record_navigation(self, action: str, outcome: str, duration_seconds: float) -> None:
        """Record a finished navigation.

        Args:
            action: Navigation action (push, replace, ...)
            outcome: completed, cancelled, not_found, redirect_loop or error
            duration_seconds: Pipeline duration in seconds
        """
        self.navigations_total.labels(action=action, outcome=outcome).inc()
        self.navigation_duration.labels(action=action).observe(duration_seconds)

    def record_not_found(self) -> None:
        self.routes_not_found.inc()

    def record_redirect(self, source: str) -> None:
        """Record one redirect hop.

        Args:
            source: rule, guard or middleware
        """
        self.redirects_total.labels(source=source).inc()

    def record_redirect_loop(self) -> None:
        self.redirect_loops.inc()

    def record_guard_denial(self, guard: str) -> None:
        self.guard_denials.labels(guard=guard).inc()

    def record_middleware_abort(self, middleware: str) -> None:
        self.middleware_aborts.labels(middleware=middleware).inc()

    def update_history_size(self, size: int) -> None:
        self.history_size.set(size)

    def get_sample_value(self, name: str, labels: Optional[dict] = None) -> Optional[float]:
        """Read a single sample from this collector's registry.

        Args:
            name: Full sample name, namespace included
            labels: Sample labels

        Returns:
            Sample value, or None if it has not been recorded
        """
        return self.registry.get_sample_value(name, labels or {})

    def export_metrics(self) -> bytes:
        """Export metrics in Prometheus format.

        Returns:
            Prometheus-formatted metrics
        """
        return generate_latest(self.registry)
