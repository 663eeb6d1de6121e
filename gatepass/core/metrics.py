"""Prometheus metrics shared by the middleware and the reservation core."""

from prometheus_client import Counter, Gauge, Histogram, generate_latest


class PrometheusMetrics:
    """Prometheus metrics collection"""

    def __init__(self) -> None:
        # HTTP metrics
        self.http_requests_total = Counter(
            "gatepass_http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
        )

        self.http_request_duration_seconds = Histogram(
            "gatepass_http_request_duration_seconds",
            "HTTP request latency",
            ["method", "endpoint"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.active_requests = Gauge(
            "gatepass_active_requests", "Number of requests being processed"
        )

        self.errors_total = Counter(
            "gatepass_errors_total", "Total application errors", ["error_type", "endpoint"]
        )

        # Business metrics
        self.reservations_total = Counter(
            "gatepass_reservations_total",
            "Reservation attempts by outcome",
            ["outcome"],
        )

        self.seats_reserved_total = Counter(
            "gatepass_seats_reserved_total", "Seats deducted by committed reservations"
        )

        self.capacity_lock_wait_seconds = Histogram(
            "gatepass_capacity_lock_wait_seconds",
            "Time spent waiting for the event row lock",
            buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0),
        )

        self.pass_verifications_total = Counter(
            "gatepass_pass_verifications_total",
            "Pass verifications by result",
            ["result"],
        )

    def record_request(
        self, method: str, endpoint: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics"""
        self.http_requests_total.labels(
            method=method, endpoint=endpoint, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(
            method=method, endpoint=endpoint
        ).observe(duration)

    def record_error(self, error_type: str, endpoint: str) -> None:
        """Record application error"""
        self.errors_total.labels(error_type=error_type, endpoint=endpoint).inc()


metrics = PrometheusMetrics()


async def get_prometheus_metrics() -> str:
    """Get Prometheus metrics"""
    return str(generate_latest().decode("utf-8"))
