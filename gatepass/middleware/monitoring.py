"""
Request monitoring middleware: structured request logs, Prometheus metrics,
and the health report served at ``/health``.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.routing import Match

from gatepass.core.cache import cache
from gatepass.core.database_manager import db_manager
from gatepass.core.metrics import PrometheusMetrics, metrics
from gatepass.core.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        (
            structlog.processors.JSONRenderer()
            if settings.monitoring.LOG_FORMAT == "json"
            else structlog.dev.ConsoleRenderer()
        ),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

struct_logger = structlog.get_logger("gatepass.requests")


def client_ip(request: Request) -> str:
    """Original client address, honouring the proxy headers"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return str(forwarded.split(",")[0].strip())
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return str(real_ip.strip())
    return str(request.client.host) if request.client else "unknown"


def _route_template(request: Request) -> str:
    """Path template of the matched route, so metric labels stay low-cardinality"""
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match == Match.FULL:
            return str(getattr(route, "path", request.url.path))
    return "unmatched"


class MonitoringMiddleware(BaseHTTPMiddleware):
    """Logs every request and records its latency and status in Prometheus."""

    def __init__(self, app: Any, prometheus: PrometheusMetrics = metrics) -> None:
        super().__init__(app)
        self.metrics = prometheus

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        endpoint = _route_template(request)
        ip = client_ip(request)

        struct_logger.info(
            "request_started",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=ip,
        )

        start_time = time.perf_counter()
        self.metrics.active_requests.inc()
        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            self.metrics.record_error(e.__class__.__name__, endpoint)
            struct_logger.error(
                "request_failed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration=duration,
                error_type=e.__class__.__name__,
                exc_info=True,
            )
            raise
        finally:
            self.metrics.active_requests.dec()

        duration = time.perf_counter() - start_time
        self.metrics.record_request(request.method, endpoint, response.status_code, duration)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration:.3f}s"

        slow = duration > settings.monitoring.SLOW_REQUEST_THRESHOLD
        (struct_logger.warning if slow else struct_logger.info)(
            "request_completed",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration=round(duration, 4),
            client_ip=ip,
        )
        return response


async def get_health_status() -> Dict[str, Any]:
    """Health of the database and the cache"""
    db_health = await db_manager.health_check()
    cache_health = await cache.health_check()

    database_ok = db_health.get("status") == "healthy"
    cache_ok = cache_health.get("status") in ("healthy", "disabled")

    overall_status = "healthy"
    if not database_ok:
        overall_status = "unhealthy"
    elif not cache_ok:
        overall_status = "degraded"

    return {
        "status": overall_status,
        "system": {
            "timestamp": time.time(),
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
        },
        "database": db_health,
        "cache": cache_health,
        "checks": {"database": database_ok, "cache": cache_ok},
    }
